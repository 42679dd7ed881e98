"""
HTML parsing and region-scoped reference extraction.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import Tag

from .urls import resolve_url


DEFAULT_URL_ATTRIBUTES = ('href', 'src', 'poster', 'data')


class Region(Enum):
    """Structural partition of a page used for link attribution."""
    HEADER = 'HEADER'
    MAIN = 'MAIN'
    FOOTER = 'FOOTER'


@dataclass(frozen=True)
class DiscoveredReference:
    """A URL-bearing attribute or style entry found on a page."""
    region: Region
    label: str
    raw_href: str
    resolved_url: str


@dataclass
class RegionReferences:
    """References grouped by region, each list in document order."""
    header: List[DiscoveredReference] = field(default_factory=list)
    main: List[DiscoveredReference] = field(default_factory=list)
    footer: List[DiscoveredReference] = field(default_factory=list)
    header_found: bool = False
    footer_found: bool = False

    def for_region(self, region: Region) -> List[DiscoveredReference]:
        return {
            Region.HEADER: self.header,
            Region.MAIN: self.main,
            Region.FOOTER: self.footer,
        }[region]


class DocumentTree:
    """
    Parsed page with an arena of element nodes.

    Every element gets an index in document order, and ``parents[i]`` holds
    the index of its parent element (-1 for the root). Containment checks
    walk these indices instead of live object links.
    """

    def __init__(self, html: str, parser: str = 'lxml'):
        self.soup = BeautifulSoup(html, parser)
        self.nodes: List[Tag] = []
        self.parents: List[int] = []
        self._index: Dict[int, int] = {}

        for tag in self.soup.find_all(True):
            self._index[id(tag)] = len(self.nodes)
            self.nodes.append(tag)
            self.parents.append(self._index.get(id(tag.parent), -1))

    def __len__(self) -> int:
        return len(self.nodes)

    def index_of(self, tag: Tag) -> Optional[int]:
        return self._index.get(id(tag))

    def select(self, selector: str) -> List[int]:
        """Indices of elements matching a CSS selector, in document order."""
        indices = (self.index_of(tag) for tag in self.soup.select(selector))
        return sorted(i for i in indices if i is not None)

    def is_inside(self, index: int, container: int) -> bool:
        """True if node ``index`` is a strict descendant of ``container``."""
        current = self.parents[index]
        while current >= 0:
            if current == container:
                return True
            current = self.parents[current]
        return False

    def outermost(self, indices: Sequence[int]) -> List[int]:
        """Drop matches nested inside another match of the same set."""
        matched = set(indices)
        result = []
        for index in indices:
            current = self.parents[index]
            nested = False
            while current >= 0:
                if current in matched:
                    nested = True
                    break
                current = self.parents[current]
            if not nested:
                result.append(index)
        return result


class RegionExtractor:
    """
    Finds the header/main/footer regions of a page and every URL-bearing
    reference inside them.
    """

    style_url_pattern = re.compile(r'''url\(\s*(['"]?)(.*?)\1\s*\)''', re.IGNORECASE)
    whitespace_pattern = re.compile(r'\s+')

    def __init__(self, header_selector: str, footer_selector: str,
                 url_attributes: Sequence[str] = DEFAULT_URL_ATTRIBUTES):
        self.header_selector = header_selector
        self.footer_selector = footer_selector
        self.url_attributes = tuple(url_attributes)
        self.logger = logging.getLogger(__name__)

    def find_header(self, tree: DocumentTree) -> Optional[int]:
        """First outermost header match, or None."""
        matches = tree.outermost(tree.select(self.header_selector)) if self.header_selector else []
        return matches[0] if matches else None

    def find_footer(self, tree: DocumentTree) -> Optional[int]:
        """Last footer match in document order, nested ones included, or None."""
        matches = tree.select(self.footer_selector) if self.footer_selector else []
        return matches[-1] if matches else None

    def extract(self, tree: DocumentTree, base_url: str) -> RegionReferences:
        """
        Collect all references of the page, attributed to a region.

        Args:
            tree: Parsed document
            base_url: Final (post-redirect) URL of the page

        Returns:
            RegionReferences with header, main and footer lists
        """
        header = self.find_header(tree)
        footer = self.find_footer(tree)
        result = RegionReferences(header_found=header is not None,
                                  footer_found=footer is not None)

        for index in range(len(tree)):
            region = self._region_of(tree, index, header, footer)
            bucket = result.for_region(region)
            bucket.extend(self._references_of(tree.nodes[index], region, base_url))

        self.logger.debug(
            f"Extracted regions from {base_url}: header={len(result.header)}, "
            f"main={len(result.main)}, footer={len(result.footer)}"
        )
        return result

    def page_anchors(self, tree: DocumentTree, base_url: str) -> List[DiscoveredReference]:
        """All ``<a href>`` references of the whole document, in document order."""
        header = self.find_header(tree)
        footer = self.find_footer(tree)
        anchors = []
        for tag in tree.soup.find_all('a', href=True):
            index = tree.index_of(tag)
            region = self._region_of(tree, index, header, footer)
            anchors.extend(self._attribute_references(tag, 'a', 'href', region, base_url))
        return anchors

    @staticmethod
    def _region_of(tree: DocumentTree, index: int,
                   header: Optional[int], footer: Optional[int]) -> Region:
        if header is not None and tree.is_inside(index, header):
            return Region.HEADER
        if footer is not None and tree.is_inside(index, footer):
            return Region.FOOTER
        return Region.MAIN

    def _references_of(self, tag: Tag, region: Region,
                       base_url: str) -> Iterator[DiscoveredReference]:
        name = (tag.name or '').lower()

        for attr in self.url_attributes:
            yield from self._attribute_references(tag, name, attr, region, base_url)

        srcset = self._attr(tag, 'srcset')
        if srcset:
            for raw in self.parse_srcset(srcset):
                resolved = resolve_url(raw, base_url)
                if resolved:
                    yield DiscoveredReference(region, f'[{name}@srcset]', raw, resolved)

        style = self._attr(tag, 'style')
        if style:
            for raw in self.urls_from_style(style):
                resolved = resolve_url(raw, base_url)
                if resolved:
                    yield DiscoveredReference(region, f'[{name}@style-url]', raw, resolved)

    def _attribute_references(self, tag: Tag, name: str, attr: str, region: Region,
                              base_url: str) -> Iterator[DiscoveredReference]:
        value = self._attr(tag, attr)
        if not value:
            return
        resolved = resolve_url(value, base_url)
        if not resolved:
            self.logger.debug(f"Dropping unresolvable {name}@{attr}={value!r} on {base_url}")
            return
        yield DiscoveredReference(region, self._label(tag, name, attr), value, resolved)

    def _label(self, tag: Tag, name: str, attr: str) -> str:
        if name == 'a':
            text = self.whitespace_pattern.sub(' ', tag.get_text()).strip()
            if text:
                return text
        return f'[{name}@{attr}]'

    @staticmethod
    def _attr(tag: Tag, attr: str) -> str:
        value = tag.get(attr)
        if isinstance(value, list):
            value = ' '.join(value)
        return (value or '').strip()

    @staticmethod
    def parse_srcset(srcset: str) -> List[str]:
        """URL token of each comma-separated ``url descriptor`` entry."""
        urls = []
        for part in srcset.split(','):
            tokens = part.strip().split()
            if tokens:
                urls.append(tokens[0])
        return urls

    @classmethod
    def urls_from_style(cls, style: str) -> List[str]:
        """Every ``url(...)`` token of an inline style, quotes removed."""
        urls = []
        for match in cls.style_url_pattern.finditer(style):
            raw = match.group(2).strip()
            if raw:
                urls.append(raw)
        return urls
