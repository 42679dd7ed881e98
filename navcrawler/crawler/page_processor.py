"""
Per-page pipeline: fetch, parse, extract, classify, deduplicate, record.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .classifier import Scope, classify_resource, classify_scope, is_followable
from .fetcher import FetchResult
from .parser import DiscoveredReference, DocumentTree, Region, RegionExtractor
from .urls import is_http_url, normalize_url
from ..utils.config import CrawlConfiguration


@dataclass(frozen=True)
class ReferenceRecord:
    """A classified reference discovered on a page."""
    source_region: Region
    label: str
    raw_href: str
    resolved_url: str
    resource_type: str
    scope: Scope

    def to_dict(self) -> dict:
        return {
            'source_region': self.source_region.value,
            'label': self.label,
            'raw_href': self.raw_href,
            'resolved_url': self.resolved_url,
            'resource_type': str(self.resource_type),
            'scope': self.scope.value,
        }


@dataclass(frozen=True)
class RegionCount:
    """Reference counts of one region: before and after deduplication."""
    total: int = 0
    unique: int = 0


@dataclass(frozen=True)
class PageRecord:
    """Inventory of one crawled page."""
    page_url: str
    request_url: str
    depth: int = 0
    counts: Dict[str, int] = field(default_factory=dict)
    scope_counts: Dict[str, int] = field(default_factory=dict)
    region_counts: Dict[str, RegionCount] = field(default_factory=dict)
    region_type_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    references: Tuple[ReferenceRecord, ...] = ()
    error: Optional[str] = None

    @property
    def total(self) -> int:
        return sum(count.total for count in self.region_counts.values())

    @property
    def unique(self) -> int:
        return len(self.references)

    @classmethod
    def failed(cls, page_url: str, request_url: str, depth: int, error: str,
               regions: Iterable[Region] = ()) -> 'PageRecord':
        return cls(
            page_url=page_url,
            request_url=request_url,
            depth=depth,
            region_counts={region.value: RegionCount() for region in regions},
            region_type_counts={region.value: {} for region in regions},
            error=error,
        )

    def to_dict(self) -> dict:
        return {
            'page_url': self.page_url,
            'request_url': self.request_url,
            'depth': self.depth,
            'total': self.total,
            'unique': self.unique,
            'counts': dict(self.counts),
            'scope_counts': dict(self.scope_counts),
            'region_counts': {
                region: {'total': count.total, 'unique': count.unique}
                for region, count in self.region_counts.items()
            },
            'region_type_counts': {
                region: dict(types) for region, types in self.region_type_counts.items()
            },
            'references': [reference.to_dict() for reference in self.references],
            'error': self.error,
        }


def dedupe_by_url(records: Sequence[ReferenceRecord],
                  ignore_prefixes: Sequence[str]) -> List[ReferenceRecord]:
    """Keep the first record per normalized URL, preserving order."""
    seen = set()
    unique = []
    for record in records:
        key = normalize_url(record.resolved_url, ignore_prefixes)
        if key and key not in seen:
            seen.add(key)
            unique.append(record)
    return unique


class PageProcessor:
    """
    Processes one URL into a PageRecord and the list of URLs to crawl next.
    """

    def __init__(self, config: CrawlConfiguration, fetcher,
                 extractor: Optional[RegionExtractor] = None):
        self.config = config
        self.fetcher = fetcher
        self.extractor = extractor or RegionExtractor(
            config.header_selector,
            config.footer_selector,
            config.url_attributes,
        )
        self.policy = config.scope_policy
        self.logger = logging.getLogger(__name__)

    async def process(self, url: str, depth: int = 0) -> Tuple[PageRecord, List[str]]:
        """
        Fetch and analyse a page.

        Args:
            url: The URL to process
            depth: Depth of the task, stored on the record

        Returns:
            (PageRecord, next candidates). Failed pages get a zero-count
            record with ``error`` set and no candidates.
        """
        fetch_result: FetchResult = await self.fetcher.fetch(url)
        page_url = fetch_result.final_url or url

        error = self._fetch_error(fetch_result)
        if error:
            self.logger.warning(f"Failed to fetch {url}: {error}")
            return self._failed(page_url, url, depth, error), []

        try:
            tree = DocumentTree(fetch_result.content or '')
        except Exception as e:
            self.logger.error(f"Error parsing content from {page_url}: {e}")
            return self._failed(page_url, url, depth, f"PARSE_ERROR: {e}"), []

        regions = self.extractor.extract(tree, page_url)
        record, header_records = self._build_record(page_url, url, depth, regions)
        candidates = self._next_candidates(tree, page_url, regions, header_records)

        self.logger.debug(
            f"Processed {page_url}: {record.total} references, "
            f"{record.unique} unique, {len(candidates)} candidates"
        )
        return record, candidates

    def _failed(self, page_url: str, url: str, depth: int, error: str) -> PageRecord:
        return PageRecord.failed(page_url, url, depth, error, self.config.reported_regions)

    @staticmethod
    def _fetch_error(result: FetchResult) -> Optional[str]:
        if result.error:
            return f"FETCH_ERROR: {result.error}"
        if not 200 <= result.status_code < 300:
            return f"HTTP_ERROR: {result.status_code}"
        if not result.is_html:
            return f"NON_HTML: {result.content_type or ''}"
        return None

    def classify(self, reference: DiscoveredReference) -> ReferenceRecord:
        """Attach resource type and scope to a discovered reference."""
        resource_type = classify_resource(reference.raw_href, reference.resolved_url)
        scope = classify_scope(reference.resolved_url, self.config.start_url, self.policy)
        return ReferenceRecord(
            source_region=reference.region,
            label=reference.label,
            raw_href=reference.raw_href,
            resolved_url=reference.resolved_url,
            resource_type=resource_type,
            scope=scope,
        )

    def _build_record(self, page_url: str, url: str, depth: int,
                      regions) -> Tuple[PageRecord, List[ReferenceRecord]]:
        ignore = self.config.param_ignore_prefixes
        region_totals: Dict[str, int] = {}
        reported: List[ReferenceRecord] = []
        header_unique: List[ReferenceRecord] = []

        for region in Region:
            classified = [self.classify(ref) for ref in regions.for_region(region)]
            unique = dedupe_by_url(classified, ignore) if self.config.dedup_by_url else classified
            if region is Region.HEADER:
                header_unique = unique
            if region not in self.config.reported_regions:
                continue
            region_totals[region.value] = len(classified)
            reported.extend(unique)

        if self.config.dedup_by_url and self.config.dedup_scope == 'page':
            reported = dedupe_by_url(reported, ignore)

        # Unique counts per region are taken after page-scope dedup.
        kept = Counter(record.source_region.value for record in reported)
        region_counts = {
            region: RegionCount(total=total, unique=kept[region])
            for region, total in region_totals.items()
        }
        region_type_counts: Dict[str, Dict[str, int]] = {region: {} for region in region_totals}
        for record in reported:
            types = region_type_counts[record.source_region.value]
            key = str(record.resource_type)
            types[key] = types.get(key, 0) + 1

        counts = Counter(str(record.resource_type) for record in reported)
        scope_counts = Counter(record.scope.value for record in reported)

        record = PageRecord(
            page_url=page_url,
            request_url=url,
            depth=depth,
            counts=dict(counts),
            scope_counts=dict(scope_counts),
            region_counts=region_counts,
            region_type_counts=region_type_counts,
            references=tuple(reported),
        )
        return record, header_unique

    def _next_candidates(self, tree: DocumentTree, page_url: str, regions,
                         header_records: List[ReferenceRecord]) -> List[str]:
        use_page_links = not self.config.follow_from_header_only or (
            self.config.fallback_to_page_links and not regions.header_found
        )

        if use_page_links:
            records = [self.classify(ref) for ref in self.extractor.page_anchors(tree, page_url)]
        else:
            records = header_records

        candidates = []
        for record in records:
            if not is_http_url(record.resolved_url):
                continue
            if not is_followable(record.resource_type, record.scope):
                continue
            candidates.append(normalize_url(record.resolved_url, self.config.param_ignore_prefixes))

        return list(dict.fromkeys(c for c in candidates if c))
