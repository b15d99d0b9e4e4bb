"""Unit tests for url_tools.py."""

import pytest

from url_tools import (
    PathKind, UrlKind, classify_extension, classify_url, clean_url, is_archive_url, is_external,
    matches_skip_pattern, normalize_path, normalize_url, resolve_url, site_host, url_to_static_path
)


# ---------------------------------------------------------------------------
# normalize_url
# ---------------------------------------------------------------------------
class TestNormalizeUrl:
    def test_strips_fragment(self):
        assert normalize_url("https://example.com/page#section") == "https://example.com/page"

    def test_strips_trailing_slash(self):
        assert normalize_url("https://example.com/a/b/") == "https://example.com/a/b"

    def test_root_loses_slash(self):
        assert normalize_url("https://example.com/") == "https://example.com"

    def test_keeps_query_verbatim(self):
        url = "https://example.com/list.php?page=2&sort=name"
        assert normalize_url(url) == url

    def test_encodes_unsafe_path_chars(self):
        assert normalize_url("https://example.com/my file.html") == "https://example.com/my%20file.html"

    def test_does_not_double_encode(self):
        assert normalize_url("https://example.com/my%20file.html") == "https://example.com/my%20file.html"

    @pytest.mark.parametrize("url", [
        "https://example.com/a b/c/#x",
        "http://example.com:8080/x/?q=1",
        "https://example.com/ünïcode/päge",
        "https://example.com",
    ])
    def test_idempotent(self, url):
        once = normalize_url(url)
        assert normalize_url(once) == once

    def test_relative_only_loses_fragment(self):
        assert normalize_url("/about#team") == "/about"

    def test_keeps_port(self):
        assert normalize_url("http://example.com:8080/a/") == "http://example.com:8080/a"


# ---------------------------------------------------------------------------
# normalize_path / classify_extension
# ---------------------------------------------------------------------------
class TestNormalizePath:
    def test_resolves_dot_segments(self):
        assert normalize_path("/a/./b/../c") == "a/c"

    def test_never_climbs_above_root(self):
        assert normalize_path("../../etc/passwd") == "etc/passwd"

    def test_collapses_empty_segments(self):
        assert normalize_path("a//b///c") == "a/b/c"

    def test_empty(self):
        assert normalize_path("/") == ""


class TestClassifyExtension:
    def test_dynamic(self):
        assert classify_extension("/contact.php") is PathKind.DYNAMIC_ROUTE

    def test_dynamic_uppercase(self):
        assert classify_extension("/Default.ASPX") is PathKind.DYNAMIC_ROUTE

    def test_static(self):
        assert classify_extension("/css/site.css") is PathKind.STATIC_FILE

    def test_directory(self):
        assert classify_extension("/about") is PathKind.DIRECTORY_INDEX

    def test_root(self):
        assert classify_extension("/") is PathKind.DIRECTORY_INDEX

    def test_dot_in_parent_directory_only(self):
        assert classify_extension("/v1.2/docs") is PathKind.DIRECTORY_INDEX


# ---------------------------------------------------------------------------
# url_to_static_path
# ---------------------------------------------------------------------------
class TestUrlToStaticPath:
    def test_root(self):
        assert url_to_static_path("https://example.com") == "index.html"

    def test_root_with_slash(self):
        assert url_to_static_path("https://example.com/") == "index.html"

    def test_directory(self):
        assert url_to_static_path("https://example.com/about") == "about/index.html"

    def test_static_file(self):
        assert url_to_static_path("https://example.com/css/site.css") == "css/site.css"

    def test_dynamic_route(self):
        assert url_to_static_path("https://example.com/contact.php") == "contact/index.html"

    def test_query_becomes_directory(self):
        assert url_to_static_path("https://example.com/list.php?page=2") == "list.php/page_2/index.html"

    def test_blank_query_values_ignored(self):
        assert url_to_static_path("https://example.com/search?a=&b=2") == "search/b_2/index.html"

    def test_query_values_sanitized(self):
        assert url_to_static_path("https://example.com/search?q=hello world") == \
            "search/q_hello_world/index.html"

    def test_cannot_escape_mirror_root(self):
        assert url_to_static_path("https://example.com/../../etc/passwd") == "etc/passwd/index.html"

    def test_stable_across_calls(self):
        url = "https://example.com/a/b.html?x=1"
        assert url_to_static_path(url) == url_to_static_path(url)


# ---------------------------------------------------------------------------
# clean_url
# ---------------------------------------------------------------------------
class TestCleanUrl:
    @pytest.mark.parametrize("value", [
        "", "   ", "#top", "javascript:void(0)", "mailto:a@b.c", "tel:123",
        "data:image/png;base64,abc", "about:blank", "<%= url %>",
    ])
    def test_ignored_values(self, value):
        assert clean_url(value) is None

    def test_none(self):
        assert clean_url(None) is None

    def test_unwraps_wayback_url(self):
        url = "https://web.archive.org/web/20200101000000/http://example.com/x"
        assert clean_url(url) == "http://example.com/x"

    def test_unwraps_root_relative_wayback_url_with_modifier(self):
        assert clean_url("/web/20200101000000im_/http://example.com/a.png") == "http://example.com/a.png"

    def test_unwrapped_url_without_scheme_gets_https(self):
        url = "https://web.archive.org/web/20200101000000/example.com/x"
        assert clean_url(url) == "https://example.com/x"

    def test_protocol_relative(self):
        assert clean_url("//cdn.example.com/a.js") == "https://cdn.example.com/a.js"

    def test_relative_untouched(self):
        assert clean_url("  page.html ") == "page.html"


# ---------------------------------------------------------------------------
# resolve_url
# ---------------------------------------------------------------------------
class TestResolveUrl:
    def test_sibling(self):
        assert resolve_url("https://example.com/a/b.html", "c.html") == "https://example.com/a/c.html"

    def test_parent(self):
        assert resolve_url("https://example.com/a/b.html", "../c.html") == "https://example.com/c.html"

    def test_root_relative(self):
        assert resolve_url("https://example.com/a/b.html", "/x/y") == "https://example.com/x/y"

    def test_keeps_trailing_slash(self):
        assert resolve_url("https://example.com/a/", "sub/") == "https://example.com/a/sub/"

    def test_query_only(self):
        assert resolve_url("https://example.com/list.php?page=1", "?page=2") == \
            "https://example.com/list.php?page=2"

    def test_fragment_only(self):
        assert resolve_url("https://example.com/a#x", "#y") == "https://example.com/a#y"

    def test_absolute_returned_as_is(self):
        assert resolve_url("https://example.com/a", "http://other.org/b") == "http://other.org/b"

    def test_dot_dot_clamped_at_root(self):
        assert resolve_url("https://example.com/a", "../../../x") == "https://example.com/x"

    def test_collapses_duplicate_slashes(self):
        assert resolve_url("https://example.com/a/b", "c//d") == "https://example.com/a/c/d"

    def test_keeps_ref_query(self):
        assert resolve_url("https://example.com/a/b", "c.php?x=1") == "https://example.com/a/c.php?x=1"


# ---------------------------------------------------------------------------
# site_host / is_external
# ---------------------------------------------------------------------------
class TestSiteHost:
    def test_strips_www(self):
        assert site_host("www.example.com") == "example.com"

    def test_keeps_www_when_nothing_left(self):
        assert site_host("www.com") == "www.com"

    def test_lowercases_and_strips_trailing_dot(self):
        assert site_host("Example.COM.") == "example.com"

    def test_ip_literal(self):
        assert site_host("192.168.0.1") == "192.168.0.1"

    def test_idna(self):
        assert site_host("bücher.de") == "xn--bcher-kva.de"


class TestIsExternal:
    def test_www_variant_is_internal(self):
        assert is_external("https://www.example.com/x", "example.com") is False

    def test_other_domain(self):
        assert is_external("https://other.org/", "example.com") is True

    def test_suffix_lookalike_is_external(self):
        assert is_external("https://notexample.com/", "example.com") is True

    def test_domain_in_path_is_external(self):
        assert is_external("https://other.org/example.com", "example.com") is True

    def test_no_host(self):
        assert is_external("/about", "example.com") is False


# ---------------------------------------------------------------------------
# classify_url
# ---------------------------------------------------------------------------
class TestClassifyUrl:
    def test_internal(self):
        assert classify_url("https://example.com/about", "example.com").kind is UrlKind.INTERNAL

    def test_external(self):
        assert classify_url("https://other.org/", "example.com").kind is UrlKind.EXTERNAL

    def test_invalid_scheme(self):
        assert classify_url("ftp://example.com/x", "example.com").kind is UrlKind.INVALID

    def test_relative_is_invalid(self):
        assert classify_url("/about", "example.com").kind is UrlKind.INVALID

    def test_archive_noise(self):
        url = "https://web.archive.org/web/20200101000000/http://example.com/"
        assert classify_url(url, "example.com").kind is UrlKind.ARCHIVE_NOISE

    def test_skip_pattern(self):
        result = classify_url("https://example.com/parking.php", "example.com", ["parking.php"])
        assert result.kind is UrlKind.SKIPPED_BY_PATTERN
        assert result.url == "https://example.com/parking.php"

    def test_archive_noise_wins_over_skip_pattern(self):
        url = "https://web.archive.org/web/1/http://example.com/edit"
        assert classify_url(url, "example.com", ["/edit"]).kind is UrlKind.ARCHIVE_NOISE


class TestPatternHelpers:
    def test_is_archive_url(self):
        assert is_archive_url("https://example.com/web/2020/x") is True
        assert is_archive_url("https://example.com/about") is False

    def test_matches_skip_pattern_ignores_blank(self):
        assert matches_skip_pattern("https://example.com/a", ["", "zzz"]) is False
        assert matches_skip_pattern("https://example.com/edit/1", ["/edit/"]) is True
