#!/usr/bin/env python3
"""
Download a website's historical snapshot from the Wayback Machine.

Given a domain and a target date, the pages captured around that date are
discovered through the CDX API and crawled breadth-first. Every page and
embedded resource is fetched from the archive, falling back to nearby
snapshots when the exact date is unavailable, and written to a local
mirror under output/<domain>/ together with sitemap.txt and missing.log.

Usage: python archive_site.py <domain> <date YYYYMMDD> [debug_level]
       [skip_existing] [max_pages] [skip_urls]
"""

import argparse
import logging
import sys
import time
from enum import Enum

import requests

from archive_config import (
    DATE_PATTERN, DEBUG_LEVELS, ConfigError, CrawlConfig, configure_logging, load_config,
    parse_skip_patterns
)
from archive_index import ArchiveIndex
from crawl_context import CrawlContext, CrawlStats
from fallback_resolver import ExhaustedFallback, FallbackResolver, ResidualArchiveReference, Snapshot
from mirror_store import MISSING_LOG_FILE, MirrorStore, MissingLog
from resource_extractor import (
    HTML_EXTENSIONS, ExtractedUrl, ResourceExtractor, ResourceKind, contains_archive_references,
    strip_wayback_artifacts
)
from snapshot_fetcher import FetchError, RetryPolicy, SnapshotFetcher, encode_text
from url_tools import UrlKind, classify_url, normalize_url

logger = logging.getLogger(__name__)

HOMEPAGE_VARIANTS = (
    "https://{domain}/",
    "https://{domain}",
    "http://{domain}/",
    "http://{domain}",
)


class HomepageNotFound(Exception):
    def __init__(self, domain: str):
        super().__init__(f"Homepage not found for {domain}")
        self.domain = domain


class CrawlState(Enum):
    PENDING = 'pending'
    FETCHING = 'fetching'
    SAVED = 'saved'
    FAILED_PERMANENT = 'failed-permanent'
    SKIPPED_EXISTING = 'skipped-existing'
    SKIPPED_PATTERN = 'skipped-pattern'
    SKIPPED_EXTERNAL = 'skipped-external'
    SKIPPED_ARCHIVE_NOISE = 'skipped-archive-noise'
    SKIPPED_INVALID = 'skipped-invalid'


class WaybackArchiver:
    def __init__(self, config: CrawlConfig, session: requests.Session | None = None,
                 fetcher=None, index=None, sleep=time.sleep):
        self.config = config
        self.domain = config.domain
        self.date = config.date
        self.session = session or requests.Session()

        self.fetcher = fetcher or SnapshotFetcher(
            self.session,
            timeout=config.timeout,
            max_redirects=config.max_redirects,
            retry_policy=RetryPolicy(backoff=config.retry_backoff),
            request_delay=config.request_delay,
            sleep=sleep,
        )
        self.index = index or ArchiveIndex(
            self.session, timeout=config.timeout, request_delay=config.request_delay, sleep=sleep
        )

        self.context = CrawlContext(
            domain=config.domain,
            date=config.date,
            skip_patterns=list(config.skip_patterns),
            frontier_limit=config.frontier_limit,
        )
        self.resolver = FallbackResolver(self.fetcher, self.index, self.context.negative_cache)
        self.extractor = ResourceExtractor(config.domain, config.skip_patterns)
        self.store = MirrorStore(config.site_dir)
        self.missing_log = MissingLog(config.site_dir / MISSING_LOG_FILE, config.domain, config.date)
        # Homepage snapshots fetched while probing, consumed by process_page
        self._prefetched: dict[str, Snapshot] = {}

    @property
    def stats(self) -> CrawlStats:
        return self.context.stats

    def discover(self) -> int:
        """Seed the frontier from the CDX index, or from the homepage as a last resort."""
        logger.info("Fetching page list via CDX API...")
        entries = self.index.discover_pages(self.domain, self.date)
        if entries:
            seeded = self.extractor.route(
                [self._seed(url) for url in entries], self.context
            )
            logger.info(f"Found {len(entries)} pages via CDX API")
            return seeded

        logger.warning("CDX returned no pages. Trying to load homepage...")
        for variant in HOMEPAGE_VARIANTS:
            url = variant.format(domain=self.domain)
            logger.info(f"  Trying homepage URL: {url}")
            try:
                result = self.fetcher.fetch_snapshot(self.date, url)
            except FetchError as e:
                logger.warning(f"  Homepage variant failed: {e}")
                continue
            logger.info(f"Homepage loaded from: {url}")
            self._prefetched[normalize_url(url)] = Snapshot.from_result(result, self.date)
            self.context.enqueue_page(url, ResourceKind.PAGE_LINK)
            return 1

        raise HomepageNotFound(self.domain)

    @staticmethod
    def _seed(url: str):
        return ExtractedUrl(normalize_url(url), ResourceKind.PAGE_LINK)

    def _page_cap_reached(self) -> bool:
        return bool(self.config.max_pages) and self.stats.total_pages >= self.config.max_pages

    def archive(self) -> CrawlStats:
        """Main method to archive the site."""
        self.discover()
        self.missing_log.initialize()

        while self.context.frontier and not self._page_cap_reached():
            url, _ = self.context.frontier.pop()
            self.process_page(url)
            self.drain_resources()

        if self.context.frontier and self._page_cap_reached():
            logger.warning(f"Reached limit of {self.config.max_pages} pages")

        self.store.write_sitemap(self.stats.sitemap)
        logger.info(f"Failed URLs have been logged to: {self.missing_log.path}")
        return self.stats

    def _record_failure(self, url: str, reason: str) -> None:
        logger.error(f"  Failed to load: {url} ({reason})")
        self.stats.record_failure(url)
        self.missing_log.append(url, reason)

    def _classify(self, url: str) -> CrawlState | None:
        """Terminal skip state for url, or None when it should be fetched."""
        classified = classify_url(url, self.domain, self.context.skip_patterns)
        if classified.kind is UrlKind.ARCHIVE_NOISE:
            logger.info(f"Skipped (Web Archive URL): {url}")
            self.stats.skipped_archive_noise += 1
            return CrawlState.SKIPPED_ARCHIVE_NOISE
        if classified.kind is UrlKind.SKIPPED_BY_PATTERN:
            logger.info(f"Skipped (Matches skip pattern): {url}")
            self.stats.record_skipped(url)
            return CrawlState.SKIPPED_PATTERN
        if classified.kind is UrlKind.INVALID:
            logger.info(f"Skipped (Invalid URL): {url}")
            return CrawlState.SKIPPED_INVALID
        if classified.kind is UrlKind.EXTERNAL:
            logger.info(f"Skipped (External link): {url}")
            self.stats.record_external(url)
            return CrawlState.SKIPPED_EXTERNAL
        return None

    def process_page(self, url: str) -> CrawlState | None:
        """Run one frontier URL through to a terminal state.

        Returns None when the URL had already been visited.
        """
        url = normalize_url(url)
        if url in self.context.visited:
            logger.debug(f"  Skipping already visited URL: {url}")
            return None

        skipped = self._classify(url)
        if skipped:
            self.context.mark_visited(url)
            return skipped

        if self.config.skip_existing and self.store.has_content(url):
            return self._reparse_existing(url)

        self.context.mark_visited(url)
        self.stats.total_pages += 1
        position = self.stats.total_pages + self.stats.skipped_existing
        total = len(self.context.frontier) + position
        logger.info(f"==> [{position} / {total}] {url}")

        try:
            snapshot = self._prefetched.pop(url, None) or self.resolver.fetch(url, self.date)
            if snapshot.is_html and contains_archive_references(snapshot.text):
                logger.error(f"  Archive.org references found in content: {url}")
                snapshot = self.resolver.lookup_closest(url, self.date)
                logger.info(f"  Found snapshot via available API: {url}")
        except (ExhaustedFallback, ResidualArchiveReference) as e:
            self._record_failure(url, str(e))
            return CrawlState.FAILED_PERMANENT

        return self._save_page(url, snapshot)

    def _reparse_existing(self, url: str) -> CrawlState:
        relative = self.store.relative_path(url)
        logger.info(f"Skipping existing file: {relative}")
        self.stats.skipped_existing += 1
        self.context.mark_visited(url)

        if any(relative.lower().endswith(ext) for ext in HTML_EXTENSIONS):
            logger.info(f"  Parsing existing file for links: {relative}")
            self.extractor.process_html(self.store.read_text(url), url, self.context)
        return CrawlState.SKIPPED_EXISTING

    def _count_fallback(self, url: str, snapshot: Snapshot) -> None:
        if snapshot.used_date != self.date:
            logger.info(f"  Used snapshot from {snapshot.used_date} for {url}")
            self.stats.found_via_fallback += 1

    def _write(self, url: str, body: bytes) -> bool:
        try:
            self.store.write(url, body)
        except OSError as e:
            self._record_failure(url, f"Write error: {e}")
            return False
        return True

    def _save_page(self, url: str, snapshot: Snapshot) -> CrawlState:
        body = snapshot.body
        if snapshot.is_html:
            html = snapshot.text
            self.extractor.process_html(html, url, self.context)
            cleaned = strip_wayback_artifacts(html)
            if cleaned != html:
                body = encode_text(cleaned, snapshot.content_type)

        if not self._write(url, body):
            return CrawlState.FAILED_PERMANENT
        self._count_fallback(url, snapshot)
        self.stats.sitemap.append(url)
        logger.info(f"  Saved: {self.store.relative_path(url)}")
        return CrawlState.SAVED

    def drain_resources(self) -> None:
        while self.context.resources:
            url, kind = self.context.resources.pop()
            self.process_resource(url, kind)

    @staticmethod
    def _is_stylesheet(url: str, kind, content_type: str = '') -> bool:
        return (kind is ResourceKind.STYLESHEET
                or 'text/css' in content_type.lower()
                or url.split('?', 1)[0].lower().endswith('.css'))

    def process_resource(self, url: str, kind=None) -> CrawlState | None:
        """Download one embedded resource unless it is already on disk."""
        url = normalize_url(url)
        if url in self.context.visited:
            return None
        self.context.mark_visited(url)

        if self.store.has_content(url):
            logger.debug(f"  Resource already on disk: {self.store.relative_path(url)}")
            if self._is_stylesheet(url, kind):
                self.extractor.process_css(self.store.read_text(url), url, self.context)
            return CrawlState.SKIPPED_EXISTING

        logger.info(f"  Downloading resource: {url}")
        try:
            snapshot = self.resolver.fetch(url, self.date, resource=True)
        except ExhaustedFallback as e:
            self._record_failure(url, str(e))
            return CrawlState.FAILED_PERMANENT

        if not self._write(url, snapshot.body):
            return CrawlState.FAILED_PERMANENT
        self._count_fallback(url, snapshot)
        self.stats.total_resources += 1
        logger.info(f"  Resource saved: {self.store.relative_path(url)}")

        if self._is_stylesheet(url, kind, snapshot.content_type):
            self.extractor.process_css(snapshot.text, url, self.context)
        return CrawlState.SAVED

    def close(self) -> None:
        self.session.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Download a website's archived snapshot from the Wayback Machine."
    )
    parser.add_argument('domain', help="Domain to archive, e.g. example.com")
    parser.add_argument('date', help="Target date as YYYYMMDD")
    parser.add_argument('debug_level', nargs='?', choices=sorted(DEBUG_LEVELS),
                        help="Show only errors (error) or all info (info, default)")
    parser.add_argument('skip_existing', nargs='?', choices=['0', '1'],
                        help="Skip URLs that already have files (1) or download all (0, default)")
    parser.add_argument('max_pages', nargs='?', type=int,
                        help="Maximum number of pages to process (default: 50, 0 = no limit)")
    parser.add_argument('skip_urls', nargs='?',
                        help="Comma-separated list of URL patterns to skip (e.g. 'parking.php,/edit/')")
    parser.add_argument('--config', help="YAML config file (default: ./config.yaml if present)")
    parser.add_argument('--output-dir', help="Root directory for mirrors (default: output)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not DATE_PATTERN.match(args.date):
        parser.error(f"date must be YYYYMMDD, got {args.date!r}")

    try:
        config = CrawlConfig.from_sources(
            load_config(args.config),
            domain=args.domain,
            date=args.date,
            debug_level=args.debug_level,
            skip_existing=None if args.skip_existing is None else args.skip_existing == '1',
            max_pages=args.max_pages,
            skip_patterns=parse_skip_patterns(args.skip_urls) if args.skip_urls else None,
            output_dir=args.output_dir,
        )
    except ConfigError as e:
        parser.error(str(e))

    configure_logging(config.debug_level)

    archiver = WaybackArchiver(config)
    try:
        stats = archiver.archive()
    except HomepageNotFound:
        print("Homepage not found. Exiting.")
        return 1
    finally:
        archiver.close()

    print('\n'.join(stats.report_lines(skip_existing=config.skip_existing)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
