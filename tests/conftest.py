"""Shared fixtures for unit tests."""

import os
import sys

import pytest
import requests

# Allow importing from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from snapshot_fetcher import FetchResult, HttpError, snapshot_url  # noqa: E402


def make_response(body=b'', status=200, content_type='text/html; charset=utf-8', url=''):
    """Build a real requests.Response without touching the network."""
    response = requests.Response()
    response._content = body if isinstance(body, bytes) else body.encode('utf-8')
    response.status_code = status
    response.headers['Content-Type'] = content_type
    response.url = url
    return response


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.max_redirects = 30
        self.closed = False

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if not self.responses:
            raise AssertionError(f"Unexpected request to {url}")
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        if not outcome.url:
            outcome.url = url
        return outcome

    def close(self):
        self.closed = True


class FakeFetcher:
    """Snapshot fetcher backed by a {snapshot url: (body, content_type)} map."""

    def __init__(self, snapshots=None):
        self.snapshots = dict(snapshots or {})
        self.requested = []

    def add(self, timestamp, url, body, content_type='text/html', fmt='id_'):
        self.snapshots[snapshot_url(timestamp, url, fmt)] = (body, content_type)

    def fetch(self, url, resource=False):
        self.requested.append(url)
        if url not in self.snapshots:
            raise HttpError(404)
        body, content_type = self.snapshots[url]
        if isinstance(body, str):
            body = body.encode('utf-8')
        return FetchResult(body=body, status=200, content_type=content_type, url=url)

    def fetch_snapshot(self, timestamp, url, fmt='id_', resource=False):
        return self.fetch(snapshot_url(timestamp, url, fmt), resource=resource)


class FakeIndex:
    """Archive index with canned answers for discovery, search and closest."""

    def __init__(self, pages=None, searches=None, closest=None):
        self.pages = list(pages or [])
        self.searches = dict(searches or {})
        self.closest_map = dict(closest or {})
        self.search_calls = []
        self.closest_calls = []

    def discover_pages(self, domain, date):
        return list(self.pages)

    def search(self, url, to=None, status_ok=True, prefix=False, limit=20):
        self.search_calls.append((url, to, status_ok, prefix))
        return list(self.searches.get((url, to, status_ok, prefix), []))

    def closest(self, url, timestamp=None):
        self.closest_calls.append((url, timestamp))
        return self.closest_map.get(url)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def fake_index():
    return FakeIndex()


@pytest.fixture
def sleeps():
    """Records requested sleep durations; pass sleeps.append as the sleep hook."""
    return []


@pytest.fixture
def sample_page_html():
    """A small page with links, assets and some Wayback leftovers."""
    return '''<html>
<head>
<title>Example</title>
<link rel="stylesheet" href="/css/site.css">
<link rel="icon" href="/favicon.ico">
<script src="https://web-static.archive.org/_static/js/wombat.js"></script>
<script src="/js/app.js"></script>
<style>body { background: url('/img/bg.png'); }</style>
</head>
<body>
<!-- BEGIN WAYBACK TOOLBAR INSERT -->
<div id="wm-ipp-base">toolbar</div>
<!-- END WAYBACK TOOLBAR INSERT -->
<div id="menu">
<a href="/about">about</a>
<a href="contact.php?lang=en#form">contact</a>
<a href="https://web.archive.org/web/20200101000000/http://example.com/news.html">news</a>
<a href="https://twitter.com/example">twitter</a>
<a href="mailto:hi@example.com">mail</a>
<a href="/files/report.pdf">report</a>
</div>
<img src="images/logo.png" srcset="images/logo.png 1x, images/logo@2x.png 2x">
<video poster="/media/poster.jpg">
<source src="/media/clip.mp4">
<track src="/media/clip.vtt">
</video>
</body>
</html>'''
