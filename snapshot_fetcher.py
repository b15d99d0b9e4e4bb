"""
Single-request access to the Wayback Machine snapshot endpoint.

A fetch either returns a FetchResult or raises one of the FetchError
subclasses below. Only transient transport failures are retried here;
everything else is left to the fallback resolver.
"""

import logging
import re
import time
from dataclasses import dataclass

import requests

from fingerprint import random_fingerprint

logger = logging.getLogger(__name__)

WAYBACK_WEB = "https://web.archive.org/web"

# Content-negotiation modifiers: raw bytes, iframe (stripped) and image
SNAPSHOT_FORMATS = ('id_', 'if_', 'im_')

NOT_ARCHIVED_PHRASES = [
    "Wayback Machine doesn't have that page archived",
    "This page is not available",
    "Page cannot be crawled or displayed",
    "404 Not Found",
    "The requested URL was not found",
    "The page you're looking for doesn't exist",
    "The page you requested could not be found",
    "The requested resource was not found",
    "The page you are looking for might have been removed",
]

_CHARSET_PATTERN = re.compile(r'charset=["\']?([\w\-]+)', re.IGNORECASE)

# Transport error codes
ERR_CONNECT = 'connect'
ERR_DNS = 'dns'
ERR_TIMEOUT = 'timeout'
ERR_OTHER = 'other'
TRANSIENT_ERRORS = {ERR_CONNECT, ERR_DNS, ERR_TIMEOUT}


class FetchError(Exception):
    """Base class for every per-request failure."""


class TransportError(FetchError):
    def __init__(self, errno: str, message: str):
        super().__init__(f"Transport error ({errno}): {message}")
        self.errno = errno
        self.message = message

    @property
    def transient(self) -> bool:
        return self.errno in TRANSIENT_ERRORS


class HttpError(FetchError):
    def __init__(self, status: int):
        super().__init__(f"HTTP {status}")
        self.status = status


class EmptyBody(FetchError):
    def __init__(self):
        super().__init__("Empty response")


class ArchiveNotFoundPage(FetchError):
    def __init__(self, phrase: str):
        super().__init__(f"Error page detected: {phrase}")
        self.phrase = phrase


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and after which pauses, a direct snapshot fetch is retried."""
    max_attempts: int = 6
    backoff: tuple = (1, 1, 3, 15, 30, 60)

    def delay_before(self, retry: int) -> float:
        """Seconds to sleep before retry number `retry` (1-based)."""
        return self.backoff[min(retry - 1, len(self.backoff) - 1)]


@dataclass
class FetchResult:
    body: bytes
    status: int
    content_type: str
    url: str

    @property
    def is_html(self) -> bool:
        return 'html' in self.content_type.lower()

    @property
    def text(self) -> str:
        return decode_body(self.body, self.content_type)


def body_charset(content_type: str = '') -> str:
    match = _CHARSET_PATTERN.search(content_type or '')
    return match.group(1) if match else 'utf-8'


def decode_body(body: bytes, content_type: str = '') -> str:
    try:
        return body.decode(body_charset(content_type), errors='replace')
    except LookupError:
        return body.decode('utf-8', errors='replace')


def encode_text(text: str, content_type: str = '') -> bytes:
    """Encode text back into the charset its content type declares."""
    try:
        return text.encode(body_charset(content_type), errors='xmlcharrefreplace')
    except LookupError:
        return text.encode('utf-8')


def snapshot_url(timestamp: str, url: str, fmt: str = 'id_') -> str:
    return f"{WAYBACK_WEB}/{timestamp}{fmt}/{url}"


def classify_transport_error(exc: requests.RequestException) -> TransportError:
    message = str(exc)
    if isinstance(exc, requests.exceptions.Timeout):
        return TransportError(ERR_TIMEOUT, message)
    if isinstance(exc, requests.exceptions.ConnectionError):
        lowered = message.lower()
        if any(s in lowered for s in ('nameresolution', 'name or service not known',
                                      'getaddrinfo', 'nodename nor servname')):
            return TransportError(ERR_DNS, message)
        return TransportError(ERR_CONNECT, message)
    return TransportError(ERR_OTHER, message)


class SnapshotFetcher:
    def __init__(self, session: requests.Session | None = None, timeout: float = 30,
                 max_redirects: int = 5, retry_policy: RetryPolicy | None = None,
                 request_delay: float = 0.0, sleep=time.sleep, fingerprint=random_fingerprint):
        self.session = session or requests.Session()
        self.session.max_redirects = max_redirects
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.request_delay = request_delay
        self.sleep = sleep
        self.fingerprint = fingerprint

    def fetch(self, url: str, resource: bool = False) -> FetchResult:
        """Issue one GET and validate the response."""
        if self.request_delay > 0:
            self.sleep(self.request_delay)

        headers = self.fingerprint(resource=resource).as_headers()
        try:
            response = self.session.get(url, headers=headers, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            raise classify_transport_error(e) from e

        if response.history:
            logger.debug(f"  Followed {len(response.history)} redirect(s) to {response.url}")

        if response.status_code != 200:
            raise HttpError(response.status_code)

        body = response.content or b''
        if not body.strip():
            raise EmptyBody()

        content_type = response.headers.get('Content-Type', '')
        result = FetchResult(body=body, status=response.status_code,
                             content_type=content_type, url=response.url or url)

        if content_type.lower().startswith('text/html'):
            lowered = result.text.lower()
            for phrase in NOT_ARCHIVED_PHRASES:
                if phrase.lower() in lowered:
                    raise ArchiveNotFoundPage(phrase)

        return result

    def fetch_snapshot(self, timestamp: str, url: str, fmt: str = 'id_',
                       resource: bool = False) -> FetchResult:
        """Fetch a snapshot, retrying transient transport failures with backoff."""
        target = snapshot_url(timestamp, url, fmt)
        logger.info(f"  Trying direct snapshot: {target}")

        attempt = 0
        while True:
            if attempt > 0:
                delay = self.retry_policy.delay_before(attempt)
                logger.info(f"  Retry attempt {attempt} after {delay}s sleep...")
                self.sleep(delay)
            try:
                return self.fetch(target, resource=resource)
            except TransportError as e:
                logger.error(f"  {e}")
                attempt += 1
                if not e.transient:
                    raise
                if attempt >= self.retry_policy.max_attempts:
                    logger.error(f"  Failed after {self.retry_policy.max_attempts} attempts")
                    raise
