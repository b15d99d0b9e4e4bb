"""Unit tests for crawl_context.py."""

from crawl_context import CrawlContext, CrawlStats, Frontier


class TestFrontier:
    def test_fifo(self):
        frontier = Frontier()
        frontier.push("a", 1)
        frontier.push("b", 2)
        assert frontier.pop() == ("a", 1)
        assert frontier.pop() == ("b", 2)
        assert len(frontier) == 0

    def test_rejects_pending_duplicate(self):
        frontier = Frontier()
        assert frontier.push("a") is True
        assert frontier.push("a") is False
        assert len(frontier) == 1

    def test_popped_url_can_be_pushed_again(self):
        frontier = Frontier()
        frontier.push("a")
        frontier.pop()
        assert "a" not in frontier
        assert frontier.push("a") is True

    def test_limit(self):
        frontier = Frontier(limit=2)
        assert frontier.push("a") and frontier.push("b")
        assert frontier.push("c") is False
        assert frontier.push("d") is False
        assert frontier.dropped == 2
        assert list(frontier) == ["a", "b"]

    def test_zero_limit_is_unbounded(self):
        frontier = Frontier(limit=0)
        for n in range(50):
            frontier.push(str(n))
        assert len(frontier) == 50


class TestCrawlContext:
    def test_enqueue_normalizes(self):
        context = CrawlContext("example.com", "20200101")
        context.enqueue_page("https://example.com/about/#team")
        assert list(context.frontier) == ["https://example.com/about"]

    def test_visited_not_enqueued(self):
        context = CrawlContext("example.com", "20200101")
        context.mark_visited("https://example.com/about")
        assert context.enqueue_page("https://example.com/about/") is False
        assert len(context.frontier) == 0

    def test_url_held_in_one_queue_only(self):
        context = CrawlContext("example.com", "20200101")
        assert context.enqueue_resource("https://example.com/a.pdf") is True
        assert context.enqueue_page("https://example.com/a.pdf") is False
        assert context.is_known("https://example.com/a.pdf")

    def test_dropped_urls_counted(self):
        context = CrawlContext("example.com", "20200101", frontier_limit=1)
        context.enqueue_page("https://example.com/a")
        context.enqueue_page("https://example.com/b")
        assert context.stats.frontier_dropped == 1


class TestCrawlStats:
    def test_record_external_dedupes(self):
        stats = CrawlStats()
        stats.record_external("https://other.org")
        stats.record_external("https://other.org")
        assert stats.external_links == ["https://other.org"]

    def test_record_skipped(self):
        stats = CrawlStats()
        stats.record_skipped("https://example.com/edit")
        stats.record_skipped("https://example.com/edit")
        assert stats.skipped_by_pattern == 2
        assert stats.skipped_urls == ["https://example.com/edit"]

    def test_record_failure(self):
        stats = CrawlStats()
        stats.record_failure("https://example.com/x")
        assert stats.not_found == 1
        assert stats.failed_urls == ["https://example.com/x"]

    def test_report_summary(self):
        stats = CrawlStats(total_pages=3, total_resources=7, found_via_fallback=1)
        lines = stats.report_lines()
        assert "=== SUMMARY ===" in lines
        assert "* Total pages processed:        3" in lines
        assert "* Total resources downloaded:   7" in lines
        assert "* Found via fallback:           1" in lines
        assert "* Failed to download:           0" in lines
        assert not any("Skipped existing" in line for line in lines)

    def test_report_listings(self):
        stats = CrawlStats(skipped_existing=4)
        stats.record_failure("https://example.com/x")
        stats.record_external("https://other.org")
        lines = stats.report_lines(skip_existing=True)
        assert "[!] Could not download these URLs:" in lines
        assert " - https://example.com/x" in lines
        assert " - https://other.org" in lines
        assert "* Skipped existing files:       4" in lines
