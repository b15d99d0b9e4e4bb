"""
Fallback chain for snapshots that are unavailable at the exact target date.

The resolver walks alternate formats, the availability API and progressively
broader CDX searches until one snapshot can be fetched. URLs for which every
strategy failed are remembered for the rest of the process so that the same
dead resource is never looked up twice.
"""

import logging
import urllib.parse
from dataclasses import dataclass

from snapshot_fetcher import SNAPSHOT_FORMATS, FetchError, FetchResult, decode_body, snapshot_url
from url_tools import normalize_url, site_host

logger = logging.getLogger(__name__)

ALTERNATE_FORMATS = tuple(fmt for fmt in SNAPSHOT_FORMATS if fmt != 'id_')


def same_resource(original: str, url: str) -> bool:
    """True when two URLs differ at most in scheme, a www. prefix or trailing slash."""
    def key(value):
        parts = urllib.parse.urlsplit(normalize_url(value))
        return site_host(parts.hostname or ''), parts.path, parts.query
    return key(original) == key(url)


class ExhaustedFallback(Exception):
    def __init__(self, url: str, reason: str):
        super().__init__(reason)
        self.url = url
        self.reason = reason


class ResidualArchiveReference(Exception):
    def __init__(self, url: str):
        super().__init__("Contains archive.org references")
        self.url = url


@dataclass
class Snapshot:
    body: bytes
    content_type: str
    used_date: str
    source: str = ''

    @property
    def is_html(self) -> bool:
        return 'html' in self.content_type.lower()

    @property
    def text(self) -> str:
        return decode_body(self.body, self.content_type)

    @classmethod
    def from_result(cls, result: FetchResult, used_date: str) -> 'Snapshot':
        return cls(body=result.body, content_type=result.content_type,
                   used_date=used_date, source=result.url)


class FallbackResolver:
    # Successively broader CDX searches, each tried only when the previous
    # one returned no candidates for this resource.
    SEARCH_PLAN = (
        {'bounded': True, 'status_ok': True, 'prefix': False},
        {'bounded': False, 'status_ok': True, 'prefix': False},
        {'bounded': False, 'status_ok': False, 'prefix': False},
        {'bounded': False, 'status_ok': True, 'prefix': True},
    )

    def __init__(self, fetcher, index, negative_cache: set | None = None):
        self.fetcher = fetcher
        self.index = index
        self.negative_cache = negative_cache if negative_cache is not None else set()
        self._closest_checked = set()

    def fetch(self, url: str, date: str, resource: bool = False) -> Snapshot:
        """Fetch url at date, falling back to nearby snapshots on failure."""
        if url in self.negative_cache:
            logger.info(f"  Skipping known failed URL: {url}")
            raise ExhaustedFallback(url, "Known failed URL")

        try:
            result = self.fetcher.fetch_snapshot(date, url, 'id_', resource=resource)
            return Snapshot.from_result(result, date)
        except FetchError as e:
            logger.warning(f"  Direct snapshot failed for {url}: {e}")
            return self.resolve(url, date, resource=resource, last_error=e)

    def _try(self, timestamp: str, url: str, fmt: str, resource: bool) -> Snapshot | None:
        target = snapshot_url(timestamp, url, fmt)
        logger.info(f"  Trying fallback snapshot: {target}")
        try:
            result = self.fetcher.fetch(target, resource=resource)
        except FetchError as e:
            logger.info(f"    {e}")
            self._last_error = e
            return None
        return Snapshot.from_result(result, timestamp)

    def resolve(self, url: str, date: str, resource: bool = False,
                last_error: Exception | None = None) -> Snapshot:
        self._last_error = last_error

        for fmt in ALTERNATE_FORMATS:
            snapshot = self._try(date, url, fmt, resource)
            if snapshot:
                return snapshot

        closest = self.index.closest(url, date)
        if closest:
            logger.info(f"  Found available snapshot from {closest}")
            snapshot = self._try(closest, url, 'id_', resource)
            if snapshot:
                return snapshot

        tried = set()
        for step in self.SEARCH_PLAN:
            candidates = [
                (timestamp, original)
                for timestamp, original in self.index.search(
                    url, to=date if step['bounded'] else None,
                    status_ok=step['status_ok'], prefix=step['prefix']
                )
                if same_resource(original, url)
            ]
            if not candidates:
                continue
            for timestamp, original in candidates:
                if (timestamp, original) in tried:
                    continue
                tried.add((timestamp, original))
                for fmt in SNAPSHOT_FORMATS:
                    snapshot = self._try(timestamp, original, fmt, resource)
                    if snapshot:
                        return snapshot
            break

        reason = str(self._last_error) if self._last_error else "No snapshots found"
        if not tried:
            logger.warning("  CDX API returned no results")
        self.negative_cache.add(url)
        raise ExhaustedFallback(url, reason)

    def lookup_closest(self, url: str, date: str) -> Snapshot:
        """Re-fetch a page whose content still wraps archive markup."""
        if url in self._closest_checked:
            raise ResidualArchiveReference(url)
        self._closest_checked.add(url)

        closest = self.index.closest(url, date)
        if closest:
            logger.info(f"  Found available snapshot from {closest}")
            snapshot = self._try(closest, url, 'id_', resource=False)
            if snapshot:
                return snapshot
        else:
            logger.info(f"  No available snapshot for {url}")
        raise ResidualArchiveReference(url)
