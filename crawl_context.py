"""
Per-run crawl state: frontier queues, visited set, negative cache and stats.

The crawl driver owns one CrawlContext for the lifetime of a run and hands it
to the components that need to read or record state. Nothing here is
persisted between runs.
"""

import logging
from collections import deque
from dataclasses import dataclass, field

from url_tools import normalize_url

logger = logging.getLogger(__name__)

DEFAULT_FRONTIER_LIMIT = 10000


class Frontier:
    """FIFO of pending (url, kind) entries; a url is held at most once."""

    def __init__(self, limit: int = DEFAULT_FRONTIER_LIMIT):
        self.limit = limit
        self.dropped = 0
        self._queue = deque()
        self._pending = set()

    def __len__(self):
        return len(self._queue)

    def __contains__(self, url):
        return url in self._pending

    def __iter__(self):
        return (url for url, _ in self._queue)

    def push(self, url: str, kind=None) -> bool:
        if url in self._pending:
            return False
        if self.limit and len(self._queue) >= self.limit:
            if not self.dropped:
                logger.warning(f"Frontier limit of {self.limit} reached, dropping new URLs")
            self.dropped += 1
            return False
        self._queue.append((url, kind))
        self._pending.add(url)
        return True

    def pop(self):
        url, kind = self._queue.popleft()
        self._pending.discard(url)
        return url, kind


@dataclass
class CrawlStats:
    total_pages: int = 0
    total_resources: int = 0
    not_found: int = 0
    found_via_fallback: int = 0
    skipped_existing: int = 0
    skipped_by_pattern: int = 0
    skipped_archive_noise: int = 0
    frontier_dropped: int = 0
    sitemap: list = field(default_factory=list)
    failed_urls: list = field(default_factory=list)
    external_links: list = field(default_factory=list)
    skipped_urls: list = field(default_factory=list)

    def record_external(self, url: str) -> None:
        if url not in self.external_links:
            self.external_links.append(url)

    def record_skipped(self, url: str) -> None:
        self.skipped_by_pattern += 1
        if url not in self.skipped_urls:
            self.skipped_urls.append(url)

    def record_failure(self, url: str) -> None:
        self.not_found += 1
        self.failed_urls.append(url)

    def report_lines(self, skip_existing: bool = False) -> list[str]:
        """End-of-run report: failure/skip listings followed by the summary."""
        lines = []
        if self.failed_urls:
            lines.append("")
            lines.append("[!] Could not download these URLs:")
            lines.extend(f" - {url}" for url in self.failed_urls)
        if self.external_links:
            lines.append("")
            lines.append("Skipped external links:")
            lines.extend(f" - {url}" for url in self.external_links)
        if self.skipped_urls:
            lines.append("")
            lines.append("Skipped URLs (matching patterns):")
            lines.extend(f" - {url}" for url in self.skipped_urls)

        lines.append("")
        lines.append("=== SUMMARY ===")
        lines.append(f"* Total pages processed:        {self.total_pages}")
        lines.append(f"* Total resources downloaded:   {self.total_resources}")
        lines.append(f"* Found via fallback:           {self.found_via_fallback}")
        lines.append(f"* Failed to download:           {self.not_found}")
        if skip_existing:
            lines.append(f"* Skipped existing files:       {self.skipped_existing}")
        if self.frontier_dropped:
            lines.append(f"* Dropped (frontier full):      {self.frontier_dropped}")
        return lines


@dataclass
class CrawlContext:
    domain: str
    date: str
    skip_patterns: list = field(default_factory=list)
    frontier_limit: int = DEFAULT_FRONTIER_LIMIT
    stats: CrawlStats = field(default_factory=CrawlStats)
    visited: set = field(default_factory=set)
    negative_cache: set = field(default_factory=set)

    def __post_init__(self):
        self.frontier = Frontier(self.frontier_limit)
        self.resources = Frontier(self.frontier_limit)

    def is_known(self, url: str) -> bool:
        return url in self.visited or url in self.frontier or url in self.resources

    def mark_visited(self, url: str) -> None:
        self.visited.add(url)

    def _enqueue(self, queue: Frontier, url: str, kind) -> bool:
        url = normalize_url(url)
        if self.is_known(url):
            return False
        added = queue.push(url, kind)
        if not added:
            self.stats.frontier_dropped += 1
        return added

    def enqueue_page(self, url: str, kind=None) -> bool:
        return self._enqueue(self.frontier, url, kind)

    def enqueue_resource(self, url: str, kind=None) -> bool:
        return self._enqueue(self.resources, url, kind)
