"""
URL canonicalization, mirror path mapping and URL classification.

Everything here is a pure function of its arguments so that the same URL
always maps to the same canonical form and the same mirror path within a
run. The crawl driver relies on that for its existence-check deduplication.
"""

import ipaddress
import posixpath
import re
import urllib.parse
from dataclasses import dataclass
from enum import Enum

# Extensions served by a script engine; mirrored as <name>/index.html
DYNAMIC_EXTENSIONS = {'php', 'asp', 'aspx', 'jsp', 'cgi', 'pl', 'py', 'rb'}

# Wayback proxy URL, absolute, protocol-relative or root-relative
WAYBACK_PATTERN = re.compile(
    r'^(?:(?:https?:)?//(?:web\.)?archive\.org)?/web/(\d+)(?:[a-z]{2}_|\*)?/(.+)$',
    re.IGNORECASE
)

ARCHIVE_URL_PATTERNS = [
    re.compile(r'web\.archive\.org'),
    re.compile(r'archive\.org'),
    re.compile(r'/web/\d+'),
    re.compile(r'/wayback/'),
    re.compile(r'/web/\d+\*'),
]

# Characters left alone when percent-encoding a path. '%' is kept so that
# already-encoded paths are not encoded twice.
_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9\-._~:/?#\[\]@!$&'()*+,;=%]")

_IGNORED_PREFIXES = ('data:', 'javascript:', 'mailto:', 'tel:', '#', 'about:')


class PathKind(Enum):
    STATIC_FILE = 'static-file'
    DYNAMIC_ROUTE = 'dynamic-route'
    DIRECTORY_INDEX = 'directory-index'


class UrlKind(Enum):
    INTERNAL = 'internal'
    EXTERNAL = 'external'
    ARCHIVE_NOISE = 'archive-noise'
    SKIPPED_BY_PATTERN = 'skipped-by-pattern'
    INVALID = 'invalid'


@dataclass(frozen=True)
class ClassifiedUrl:
    kind: UrlKind
    url: str


def normalize_url(url: str) -> str:
    """Canonicalize a URL: drop the fragment, encode the path, trim slashes.

    The query string is preserved verbatim. Strings without a scheme and host
    only lose their fragment.
    """
    url = url.split('#', 1)[0]
    parts = urllib.parse.urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url

    path = _UNSAFE_PATH_CHARS.sub(lambda m: urllib.parse.quote(m.group(0), safe=''), parts.path)
    path = path.rstrip('/')

    query = f"?{parts.query}" if parts.query else ''
    return f"{parts.scheme}://{parts.netloc}{path}{query}"


def normalize_path(path: str) -> str:
    """Resolve '.' and '..' segments; the result never climbs above the root."""
    result = []
    for segment in path.lstrip('/').split('/'):
        if segment == '..':
            if result:
                result.pop()
        elif segment not in ('.', ''):
            result.append(segment)
    return '/'.join(result)


def classify_extension(path: str) -> PathKind:
    extension = posixpath.splitext(path.rstrip('/').rsplit('/', 1)[-1])[1].lstrip('.').lower()
    if not extension:
        return PathKind.DIRECTORY_INDEX
    if extension in DYNAMIC_EXTENSIONS:
        return PathKind.DYNAMIC_ROUTE
    return PathKind.STATIC_FILE


def _query_component(query: str) -> str:
    params = {}
    for key, value in urllib.parse.parse_qsl(query, keep_blank_values=True):
        if value == '':
            continue
        params[key] = re.sub(r'[^a-zA-Z0-9-]', '_', value)
    return '_'.join(f"{key}_{value}" for key, value in params.items())


def url_to_static_path(url: str) -> str:
    """Map a URL to its relative path inside the mirror.

    Query parameters become a directory component so that dynamic URLs can
    be stored as static files, e.g. ``/list.php?page=2`` maps to
    ``list.php/page_2/index.html``.
    """
    parts = urllib.parse.urlsplit(url)
    path = parts.path or '/'

    if parts.query:
        component = _query_component(parts.query)
        if component:
            path = path.rstrip('/') + '/' + component

    path = path.rstrip('/')
    kind = classify_extension(path)

    if path == '':
        path = 'index.html'
    elif kind is PathKind.DYNAMIC_ROUTE:
        path = posixpath.splitext(path)[0] + '/index.html'
    elif kind is PathKind.DIRECTORY_INDEX:
        path += '/index.html'

    return normalize_path(path) or 'index.html'


def clean_url(url: str) -> str | None:
    """Extract the original URL from a potentially Wayback-wrapped URL.

    Returns None for values that never point at fetchable content.
    """
    if not url:
        return None
    url = url.strip()
    if not url or url.lower().startswith(_IGNORED_PREFIXES) or '<' in url:
        return None

    match = WAYBACK_PATTERN.match(url)
    if match:
        original = match.group(2)
        if original.startswith('http'):
            return original
        return 'https://' + original.lstrip('/')

    if url.startswith('//'):
        return 'https:' + url

    return url


def resolve_url(base: str, ref: str) -> str:
    """Resolve ref against base the way a same-origin browser would."""
    if urllib.parse.urlsplit(ref).scheme:
        return ref

    if ref.startswith('#'):
        return base.split('#', 1)[0] + ref
    if ref.startswith('?'):
        return base.split('#', 1)[0].split('?', 1)[0] + ref

    parts = urllib.parse.urlsplit(base)
    scheme = parts.scheme or 'http'
    directory = '' if ref.startswith('/') else re.sub(r'/[^/]*$', '', parts.path)

    ref_path, sep, ref_query = ref.partition('?')
    joined = re.sub(r'/+', '/', f"{directory}/{ref_path}")
    resolved = '/' + normalize_path(joined)
    if joined.endswith('/') and resolved != '/':
        resolved += '/'

    return f"{scheme}://{parts.netloc}{resolved}{sep}{ref_query}"


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip('[]'))
    except ValueError:
        return False
    return True


def site_host(host: str) -> str:
    """Canonical host used for same-site comparison.

    A leading ``www.`` is dropped only when what remains still has a dot.
    IP literals and hosts that cannot be IDNA-encoded are returned as-is.
    """
    host = host.lower().rstrip('.')
    if _is_ip(host):
        return host
    try:
        host = host.encode('idna').decode('ascii')
    except UnicodeError:
        return host
    if host.startswith('www.') and '.' in host[4:]:
        return host[4:]
    return host


def is_external(url: str, domain: str) -> bool:
    host = urllib.parse.urlsplit(url).hostname
    if not host:
        return False
    return site_host(host) != site_host(domain)


def is_archive_url(url: str) -> bool:
    return any(pattern.search(url) for pattern in ARCHIVE_URL_PATTERNS)


def matches_skip_pattern(url: str, patterns) -> bool:
    return any(pattern and pattern in url for pattern in patterns)


def classify_url(url: str, domain: str, skip_patterns=()) -> ClassifiedUrl:
    """Single classification point for every URL the crawler touches."""
    parts = urllib.parse.urlsplit(url)
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        return ClassifiedUrl(UrlKind.INVALID, url)
    if is_archive_url(url):
        return ClassifiedUrl(UrlKind.ARCHIVE_NOISE, url)
    if matches_skip_pattern(url, skip_patterns):
        return ClassifiedUrl(UrlKind.SKIPPED_BY_PATTERN, url)
    if is_external(url, domain):
        return ClassifiedUrl(UrlKind.EXTERNAL, url)
    return ClassifiedUrl(UrlKind.INTERNAL, url)
