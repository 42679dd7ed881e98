"""Tests for region detection and reference extraction."""

from __future__ import annotations

import pytest

from navcrawler.crawler.parser import DocumentTree, Region, RegionExtractor
from navcrawler.utils.config import DEFAULT_FOOTER_SELECTOR, DEFAULT_HEADER_SELECTOR


BASE = "https://a.test/"

LAYOUT = """
<html><body>
  <header class="top">
    <nav><a href="/about">About</a></nav>
    <div class="site-header"><a href="/inner">Inner</a></div>
    <img src="/logo.png">
  </header>
  <main><a href="/article">Read</a></main>
  <div class="footer"><a href="/early-footer">Early</a></div>
  <footer><div><ul><li><a href="/imprint">Imprint</a></li></ul></div></footer>
</body></html>
"""


@pytest.fixture
def extractor() -> RegionExtractor:
    return RegionExtractor(DEFAULT_HEADER_SELECTOR, DEFAULT_FOOTER_SELECTOR)


def urls(references):
    return [reference.resolved_url for reference in references]


class TestDocumentTree:
    HTML = '<div id="a"><p id="b"><span id="c">x</span></p></div><div id="d"></div>'

    def test_containment_is_strict(self):
        tree = DocumentTree(self.HTML)
        a, b, c, d = (tree.index_of(tree.soup.find(id=i)) for i in "abcd")
        assert tree.is_inside(c, a)
        assert tree.is_inside(c, b)
        assert tree.is_inside(b, a)
        assert not tree.is_inside(a, a)
        assert not tree.is_inside(a, c)
        assert not tree.is_inside(d, a)

    def test_outermost_drops_nested_matches(self):
        tree = DocumentTree(self.HTML)
        a, b, c, d = (tree.index_of(tree.soup.find(id=i)) for i in "abcd")
        assert tree.outermost([a, c, d]) == [a, d]
        assert tree.outermost([b, c]) == [b]

    def test_select_in_document_order(self):
        tree = DocumentTree(self.HTML)
        selected = tree.select("#d, #a")
        assert selected == sorted(selected)
        assert [tree.nodes[i].get("id") for i in selected] == ["a", "d"]


class TestRegionDetection:
    def test_nested_header_match_resolves_to_outermost(self, extractor):
        tree = DocumentTree(LAYOUT)
        header = extractor.find_header(tree)
        assert tree.nodes[header].name == "header"

    def test_footer_is_last_match(self, extractor):
        tree = DocumentTree(LAYOUT)
        footer = extractor.find_footer(tree)
        assert tree.nodes[footer].name == "footer"

    def test_references_attributed_by_containment(self, extractor):
        refs = extractor.extract(DocumentTree(LAYOUT), BASE)
        assert refs.header_found and refs.footer_found
        assert urls(refs.header) == [
            "https://a.test/about",
            "https://a.test/inner",
            "https://a.test/logo.png",
        ]
        assert urls(refs.main) == ["https://a.test/article", "https://a.test/early-footer"]
        assert urls(refs.footer) == ["https://a.test/imprint"]
        assert all(r.region is Region.FOOTER for r in refs.footer)

    def test_no_header_no_footer(self, extractor):
        refs = extractor.extract(DocumentTree('<div><a href="/x">X</a></div>'), BASE)
        assert not refs.header_found
        assert not refs.footer_found
        assert refs.header == [] and refs.footer == []
        assert urls(refs.main) == ["https://a.test/x"]

    def test_nested_footer_match_wins(self, extractor):
        html = ('<main><a href="/m">M</a></main>'
                '<footer><div class="footer"><a href="/inner">I</a></div>'
                '<a href="/outer">O</a></footer>')
        refs = extractor.extract(DocumentTree(html), BASE)
        assert urls(refs.footer) == ["https://a.test/inner"]
        assert urls(refs.main) == ["https://a.test/m", "https://a.test/outer"]

    def test_role_attributes(self, extractor):
        html = ('<div role="banner"><a href="/h">H</a></div>'
                '<div role="contentinfo"><a href="/f">F</a></div>')
        refs = extractor.extract(DocumentTree(html), BASE)
        assert urls(refs.header) == ["https://a.test/h"]
        assert urls(refs.footer) == ["https://a.test/f"]

    def test_custom_selectors(self):
        extractor = RegionExtractor("#top", "#bottom")
        html = ('<header><a href="/ignored">I</a></header>'
                '<div id="top"><a href="/h">H</a></div><div id="bottom"><a href="/f">F</a></div>')
        refs = extractor.extract(DocumentTree(html), BASE)
        assert urls(refs.header) == ["https://a.test/h"]
        assert urls(refs.main) == ["https://a.test/ignored"]
        assert urls(refs.footer) == ["https://a.test/f"]

    def test_element_that_is_the_header_itself_is_not_inside(self, extractor):
        html = '<header style="background: url(/bg.png)"><a href="/h">H</a></header>'
        refs = extractor.extract(DocumentTree(html), BASE)
        assert urls(refs.header) == ["https://a.test/h"]
        assert urls(refs.main) == ["https://a.test/bg.png"]


class TestReferenceExtraction:
    def test_anchor_label_collapses_whitespace(self, extractor):
        html = '<header><a href="/x">  Hello \n   <b>World</b> </a></header>'
        [ref] = extractor.extract(DocumentTree(html), BASE).header
        assert ref.label == "Hello World"
        assert ref.raw_href == "/x"

    def test_attribute_labels(self, extractor):
        html = ('<header><a href="/y"><img src="/i.png"></a>'
                '<video src="/v.mp4" poster="/p.jpg"></video>'
                '<object data="/file.pdf"></object></header>')
        refs = extractor.extract(DocumentTree(html), BASE).header
        assert [(r.label, r.resolved_url) for r in refs] == [
            ("[a@href]", "https://a.test/y"),
            ("[img@src]", "https://a.test/i.png"),
            ("[video@src]", "https://a.test/v.mp4"),
            ("[video@poster]", "https://a.test/p.jpg"),
            ("[object@data]", "https://a.test/file.pdf"),
        ]

    def test_srcset_entries(self, extractor):
        html = '<header><img srcset="/s1.png 1x, /s2.png 2x,  /s3.png 640w"></header>'
        refs = extractor.extract(DocumentTree(html), BASE).header
        assert urls(refs) == ["https://a.test/s1.png", "https://a.test/s2.png", "https://a.test/s3.png"]
        assert {r.label for r in refs} == {"[img@srcset]"}

    def test_style_urls(self, extractor):
        html = """<footer><div style="background: url('/bg.jpg'); mask: url( "/m.svg" ) ; x: url(/bg2.png)"></div></footer>"""
        refs = extractor.extract(DocumentTree(html), BASE).footer
        assert urls(refs) == ["https://a.test/bg.jpg", "https://a.test/m.svg", "https://a.test/bg2.png"]
        assert {r.label for r in refs} == {"[div@style-url]"}

    def test_resolution_against_final_url(self, extractor):
        html = '<header><a href="page">P</a><a href="//cdn.test/x.js">CDN</a></header>'
        refs = extractor.extract(DocumentTree(html), "https://a.test/new/").header
        assert urls(refs) == ["https://a.test/new/page", "https://cdn.test/x.js"]

    def test_malformed_and_empty_hrefs_dropped(self, extractor):
        html = ('<header><a href="http://[broken">Bad</a><a href="">Empty</a>'
                '<a href="   ">Blank</a><a href="/ok">OK</a></header>')
        refs = extractor.extract(DocumentTree(html), BASE).header
        assert urls(refs) == ["https://a.test/ok"]

    def test_non_http_schemes_kept(self, extractor):
        html = '<header><a href="mailto:info@a.test">Mail</a><a href="javascript:void(0)">JS</a></header>'
        refs = extractor.extract(DocumentTree(html), BASE).header
        assert urls(refs) == ["mailto:info@a.test", "javascript:void(0)"]

    def test_configured_attributes_only(self):
        extractor = RegionExtractor(DEFAULT_HEADER_SELECTOR, DEFAULT_FOOTER_SELECTOR, ("href",))
        html = '<header><a href="/a">A</a><img src="/i.png"></header>'
        refs = extractor.extract(DocumentTree(html), BASE).header
        assert urls(refs) == ["https://a.test/a"]


class TestPageAnchors:
    def test_all_anchors_with_regions(self, extractor):
        anchors = extractor.page_anchors(DocumentTree(LAYOUT), BASE)
        assert [(a.region, a.resolved_url) for a in anchors] == [
            (Region.HEADER, "https://a.test/about"),
            (Region.HEADER, "https://a.test/inner"),
            (Region.MAIN, "https://a.test/article"),
            (Region.MAIN, "https://a.test/early-footer"),
            (Region.FOOTER, "https://a.test/imprint"),
        ]


class TestHelpers:
    def test_parse_srcset(self):
        assert RegionExtractor.parse_srcset("a.png 1x, b.png") == ["a.png", "b.png"]
        assert RegionExtractor.parse_srcset(" , ") == []

    def test_urls_from_style(self):
        assert RegionExtractor.urls_from_style("color: red") == []
        assert RegionExtractor.urls_from_style("background:URL(\"x.png\")") == ["x.png"]
        assert RegionExtractor.urls_from_style("background: url()") == []
