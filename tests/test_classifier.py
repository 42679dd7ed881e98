"""Tests for navcrawler.crawler.classifier."""

from __future__ import annotations

import pytest

from navcrawler.crawler.classifier import (
    ResourceType,
    Scope,
    ScopePolicy,
    classify_resource,
    classify_scope,
    in_scope,
    is_followable,
)


START = "https://a.test/"
SAME_ORIGIN = ScopePolicy(same_origin_only=True, include_subdomains=False)
HOST_ONLY = ScopePolicy(same_origin_only=False, include_subdomains=False)
SUBDOMAINS = ScopePolicy(same_origin_only=False, include_subdomains=True)


class TestClassifyResource:
    def test_mailto_wins_without_extension(self):
        assert classify_resource("mailto:a@b.com", "mailto:a@b.com") is ResourceType.MAIL

    def test_mailto_with_file_like_address(self):
        assert classify_resource("mailto:report@a.pdf", "mailto:report@a.pdf") is ResourceType.MAIL

    def test_tel(self):
        assert classify_resource("TEL:+49123", "tel:+49123") is ResourceType.TEL

    def test_pdf_case_insensitive(self):
        assert classify_resource("/x.PDF", "https://a.test/x.PDF") is ResourceType.PDF

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/a.jpg", ResourceType.IMAGE),
            ("/a.JPEG", ResourceType.IMAGE),
            ("/a.png?v=3", ResourceType.IMAGE),
            ("/a.gif", ResourceType.IMAGE),
            ("/a.webp", ResourceType.IMAGE),
            ("/logo.svg", ResourceType.SVG),
            ("/s.css", ResourceType.CSS),
            ("/app.js", ResourceType.JS),
            ("/mod.mjs", ResourceType.JS),
            ("/f.woff2", ResourceType.FONT),
            ("/f.otf", ResourceType.FONT),
            ("/v.webm", ResourceType.VIDEO),
            ("/s.ogg", ResourceType.AUDIO),
            ("/d.json", ResourceType.JSON),
            ("/sitemap.xml", ResourceType.XML),
            ("/favicon.ico", ResourceType.ICON),
            ("/dl.zip", ResourceType.ARCHIVE),
            ("/about", ResourceType.HTML),
            ("/index.html", ResourceType.HTML),
            ("/", ResourceType.HTML),
        ],
    )
    def test_extensions(self, path, expected):
        assert classify_resource(path, f"https://a.test{path}") is expected

    def test_extension_in_query_is_ignored(self):
        assert classify_resource("/page?file=x.pdf", "https://a.test/page?file=x.pdf") is ResourceType.HTML

    def test_canonical_scheme_names(self):
        assert classify_resource("data:image/png;base64,AAA", "data:image/png;base64,AAA") is ResourceType.DATA
        assert classify_resource("blob:https://a.test/1", "blob:https://a.test/1") is ResourceType.BLOB
        assert classify_resource("ftp://files.test/a.pdf", "ftp://files.test/a.pdf") is ResourceType.FTP

    def test_other_scheme_is_uppercased(self):
        assert classify_resource("javascript:void(0)", "javascript:void(0)") == "JAVASCRIPT"
        assert classify_resource("sms:123", "sms:123") == "SMS"

    def test_relative_without_resolution_is_other(self):
        assert classify_resource("about", "") is ResourceType.OTHER

    def test_members_compare_to_names(self):
        assert ResourceType.HTML == "HTML"
        assert str(ResourceType.PDF) == "PDF"


class TestClassifyScope:
    def test_same_origin_other_port_is_external(self):
        assert classify_scope("https://a.test:8443/", START, SAME_ORIGIN) is Scope.EXTERNAL

    def test_same_origin_explicit_default_port_is_internal(self):
        assert classify_scope("https://a.test:443/x", START, SAME_ORIGIN) is Scope.INTERNAL

    def test_same_origin_scheme_mismatch(self):
        assert classify_scope("http://a.test/x", START, SAME_ORIGIN) is Scope.EXTERNAL
        assert classify_scope("http://a.test/x", START, HOST_ONLY) is Scope.INTERNAL

    def test_host_case_insensitive(self):
        assert classify_scope("https://A.TEST/x", START, SAME_ORIGIN) is Scope.INTERNAL

    def test_subdomains(self):
        assert classify_scope("https://blog.a.test/", START, SUBDOMAINS) is Scope.INTERNAL
        assert classify_scope("https://deep.blog.a.test/", START, SUBDOMAINS) is Scope.INTERNAL
        assert classify_scope("https://evil-a.test/", START, SUBDOMAINS) is Scope.EXTERNAL
        assert classify_scope("https://a.test.evil.com/", START, SUBDOMAINS) is Scope.EXTERNAL

    def test_subdomain_without_flag_is_external(self):
        assert classify_scope("https://blog.a.test/", START, HOST_ONLY) is Scope.EXTERNAL

    def test_same_origin_takes_priority_over_subdomains(self):
        policy = ScopePolicy(same_origin_only=True, include_subdomains=True)
        assert classify_scope("https://blog.a.test/", START, policy) is Scope.EXTERNAL

    def test_non_http_and_malformed_are_other(self):
        assert classify_scope("mailto:a@a.test", START, SAME_ORIGIN) is Scope.OTHER
        assert classify_scope("javascript:void(0)", START, SAME_ORIGIN) is Scope.OTHER
        assert classify_scope("http://[::1", START, SAME_ORIGIN) is Scope.OTHER
        assert classify_scope("/relative", START, SAME_ORIGIN) is Scope.OTHER

    @pytest.mark.parametrize(
        "url",
        [
            "https://a.test/x",
            "https://a.test:8443/",
            "http://a.test/",
            "https://blog.a.test/",
            "mailto:a@a.test",
            "http://[::1",
        ],
    )
    @pytest.mark.parametrize("policy", [SAME_ORIGIN, HOST_ONLY, SUBDOMAINS])
    def test_in_scope_matches_classification(self, url, policy):
        assert in_scope(url, START, policy) == (classify_scope(url, START, policy) is Scope.INTERNAL)


class TestIsFollowable:
    def test_only_internal_html(self):
        assert is_followable(ResourceType.HTML, Scope.INTERNAL)
        assert not is_followable(ResourceType.HTML, Scope.EXTERNAL)
        assert not is_followable(ResourceType.PDF, Scope.INTERNAL)
        assert not is_followable("JAVASCRIPT", Scope.OTHER)
