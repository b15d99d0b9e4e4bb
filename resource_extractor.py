"""
Extraction of page links and embedded resources from HTML and CSS.

HTML is parsed with BeautifulSoup; CSS is scanned with regular expressions
for url(), @import and @font-face references. Every candidate is cleaned of
Wayback proxy prefixes, resolved against the document URL, normalized and
then routed into the crawl context according to its classification.
"""

import logging
import re
import urllib.parse
from dataclasses import dataclass
from enum import Enum

from bs4 import BeautifulSoup, Comment

from url_tools import (
    PathKind, UrlKind, classify_extension, classify_url, clean_url, normalize_url, resolve_url
)

logger = logging.getLogger(__name__)

HTML_EXTENSIONS = {'.html', '.htm', '.shtml', '.xhtml'}

# Wayback URL embedded anywhere in a document
WAYBACK_INLINE_PATTERN = re.compile(
    r'(?:https?:)?//web\.archive\.org/web/(\d+)(?:[a-z]*_)?/(https?://[^\s"\'<>]+|[^\s"\'<>]+)'
)

CSS_URL_PATTERN = re.compile(r'url\(\s*["\']?([^)"\'\s]+)["\']?\s*\)', re.IGNORECASE)
CSS_IMPORT_PATTERN = re.compile(r'@import\s+(?:url\()?\s*["\']?([^"\')\s;]+)', re.IGNORECASE)
FONT_FACE_SRC_PATTERN = re.compile(r'@font-face\s*{[^}]*?src\s*:\s*([^;}]+)', re.IGNORECASE)

ARCHIVE_REFERENCE_PATTERNS = [
    re.compile(r'web\.archive\.org'),
    re.compile(r'archive\.org'),
    re.compile(r'wayback machine', re.IGNORECASE),
    re.compile(r'__wm\.|WB_wombat|wombat\.js'),
]


class ResourceKind(Enum):
    PAGE_LINK = 'page-link'
    STYLESHEET = 'stylesheet'
    SCRIPT = 'script'
    IMAGE = 'image'
    VIDEO_SOURCE = 'video-source'
    SUBTITLE_TRACK = 'subtitle-track'


@dataclass(frozen=True)
class ExtractedUrl:
    url: str
    kind: ResourceKind


def contains_archive_references(content: str) -> bool:
    """True when content still carries Wayback Machine markup or links."""
    return any(pattern.search(content) for pattern in ARCHIVE_REFERENCE_PATTERNS)


def _unwrap_wayback(match) -> str:
    original = match.group(2)
    return original if original.startswith('http') else 'https://' + original


def strip_wayback_artifacts(html: str) -> str:
    """Remove all Wayback Machine artifacts from HTML using regex."""
    # Remove Wayback toolbar
    html = re.sub(
        r'<!--\s*BEGIN WAYBACK TOOLBAR INSERT\s*-->.*?<!--\s*END WAYBACK TOOLBAR INSERT\s*-->',
        '', html, flags=re.DOTALL | re.IGNORECASE
    )
    # Remove archive.org scripts (external and inline)
    html = re.sub(
        r'<script[^>]*src=["\'][^"\']*(?:archive\.org|wombat)[^"\']*["\'][^>]*>.*?</script>',
        '', html, flags=re.DOTALL | re.IGNORECASE
    )
    html = re.sub(
        r'<script[^>]*>(?:(?!</script>).)*(?:__wm\.|WB_wombat)(?:(?!</script>).)*</script>',
        '', html, flags=re.DOTALL | re.IGNORECASE
    )
    # Remove archive.org stylesheets
    html = re.sub(
        r'<link[^>]*href=["\'][^"\']*archive\.org[^"\']*["\'][^>]*>',
        '', html, flags=re.IGNORECASE
    )
    # Replace Wayback URLs with originals
    return WAYBACK_INLINE_PATTERN.sub(_unwrap_wayback, html)


def _remove_wayback_dom_elements(soup: BeautifulSoup) -> None:
    """Remove Wayback Machine injected DOM elements."""
    for element in soup.find_all(id=re.compile(r'^wm-|^playback|^donato', re.IGNORECASE)):
        element.decompose()
    for element in soup.find_all(class_=re.compile(r'^wm-|^wb-', re.IGNORECASE)):
        element.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()


def _parse_srcset(srcset: str) -> list[str]:
    candidates = []
    for part in srcset.split(','):
        item = part.strip()
        if item:
            candidates.append(item.split()[0])
    return candidates


def _link_kind(rel) -> ResourceKind:
    rel = ' '.join(rel) if isinstance(rel, list) else (rel or '')
    rel = rel.lower()
    if 'stylesheet' in rel:
        return ResourceKind.STYLESHEET
    if 'icon' in rel:
        return ResourceKind.IMAGE
    return ResourceKind.PAGE_LINK


class ResourceExtractor:
    def __init__(self, domain: str, skip_patterns=()):
        self.domain = domain
        self.skip_patterns = list(skip_patterns)

    def _candidate(self, raw: str, base_url: str, kind: ResourceKind) -> ExtractedUrl | None:
        cleaned = clean_url(raw)
        if not cleaned:
            return None
        return ExtractedUrl(normalize_url(resolve_url(base_url, cleaned)), kind)

    def extract_html(self, document: str, base_url: str) -> list[ExtractedUrl]:
        """Extract (url, kind) pairs from an HTML document, in document order."""
        soup = BeautifulSoup(document, 'html.parser')
        _remove_wayback_dom_elements(soup)

        found = []

        def add(raw, kind):
            if raw:
                candidate = self._candidate(raw, base_url, kind)
                if candidate:
                    found.append(candidate)

        for video in soup.find_all('video'):
            add(video.get('src'), ResourceKind.VIDEO_SOURCE)
            add(video.get('poster'), ResourceKind.IMAGE)
            for source in video.find_all('source'):
                add(source.get('src'), ResourceKind.VIDEO_SOURCE)
            for track in video.find_all('track'):
                add(track.get('src'), ResourceKind.SUBTITLE_TRACK)

        for link in soup.find_all('link', href=True):
            add(link['href'], _link_kind(link.get('rel')))

        for style in soup.find_all('style'):
            if style.string:
                found.extend(self.extract_css(style.string, base_url))
        for element in soup.find_all(style=True):
            found.extend(self.extract_css(element['style'], base_url))

        for script in soup.find_all('script', src=True):
            add(script['src'], ResourceKind.SCRIPT)

        for img in soup.find_all('img'):
            add(img.get('src'), ResourceKind.IMAGE)
        for element in soup.find_all(['img', 'source'], srcset=True):
            for candidate in _parse_srcset(element['srcset']):
                add(candidate, ResourceKind.IMAGE)

        for anchor in soup.find_all('a', href=True):
            add(anchor['href'], ResourceKind.PAGE_LINK)

        return _dedupe(found)

    def extract_css(self, css: str, base_url: str) -> list[ExtractedUrl]:
        """Extract resource references from a stylesheet or inline style."""
        found = []
        for match in CSS_IMPORT_PATTERN.finditer(css):
            candidate = self._candidate(match.group(1), base_url, ResourceKind.STYLESHEET)
            if candidate:
                found.append(candidate)

        sources = [m.group(1) for m in CSS_URL_PATTERN.finditer(css)]
        for block in FONT_FACE_SRC_PATTERN.finditer(css):
            sources.extend(m.group(1) for m in CSS_URL_PATTERN.finditer(block.group(1)))

        for raw in sources:
            candidate = self._candidate(raw, base_url, ResourceKind.IMAGE)
            if candidate:
                found.append(candidate)

        return _dedupe(found)

    def route(self, extracted: list[ExtractedUrl], context) -> int:
        """Classify extracted URLs and queue the internal ones.

        Returns the number of URLs newly added to either queue.
        """
        added = 0
        for item in extracted:
            classified = classify_url(item.url, self.domain, self.skip_patterns)

            if classified.kind is UrlKind.INVALID:
                logger.debug(f"  Invalid URL: {item.url}")
            elif classified.kind is UrlKind.ARCHIVE_NOISE:
                logger.info(f"  Skipped (Web Archive URL): {item.url}")
                context.stats.skipped_archive_noise += 1
            elif classified.kind is UrlKind.SKIPPED_BY_PATTERN:
                logger.info(f"  Skipped (Matches skip pattern): {item.url}")
                context.stats.record_skipped(item.url)
            elif classified.kind is UrlKind.EXTERNAL:
                logger.info(f"  External {item.kind.value}: {item.url}")
                context.stats.record_external(item.url)
            elif self._is_page(item):
                added += context.enqueue_page(item.url, item.kind)
            else:
                added += context.enqueue_resource(item.url, item.kind)
        return added

    @staticmethod
    def _is_page(item: ExtractedUrl) -> bool:
        if item.kind is not ResourceKind.PAGE_LINK:
            return False
        path = urllib.parse.urlsplit(item.url).path
        if classify_extension(path) is not PathKind.STATIC_FILE:
            return True
        return any(path.lower().endswith(ext) for ext in HTML_EXTENSIONS)

    def process_html(self, document: str, base_url: str, context) -> int:
        return self.route(self.extract_html(document, base_url), context)

    def process_css(self, css: str, base_url: str, context) -> int:
        return self.route(self.extract_css(css, base_url), context)


def _dedupe(items: list[ExtractedUrl]) -> list[ExtractedUrl]:
    seen = set()
    unique = []
    for item in items:
        if item.url not in seen:
            seen.add(item.url)
            unique.append(item)
    return unique
