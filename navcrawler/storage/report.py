"""
Aggregation of page records and report file writing (CSV and JSON).
"""

import csv
import json
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from ..crawler.classifier import Scope
from ..crawler.page_processor import PageRecord
from ..crawler.parser import Region


# Always present as CSV columns, in this order; other types are appended.
BASE_TYPE_COLUMNS = (
    'HTML', 'IMAGE', 'SVG', 'PDF', 'CSS', 'JS', 'FONT', 'AUDIO', 'VIDEO',
    'JSON', 'XML', 'MAIL', 'TEL', 'DATA', 'BLOB', 'FTP', 'OTHER',
)
SCOPE_COLUMNS = tuple(scope.value for scope in Scope)
CSV_DELIMITER = ';'


class ReportError(Exception):
    """Raised when a report file cannot be written."""


@dataclass
class CrawlSummary:
    """Aggregate over all page records of a crawl."""
    pages: int = 0
    error_pages: int = 0
    references_total: int = 0
    references_unique: int = 0
    type_counts: Dict[str, int] = field(default_factory=dict)
    scope_counts: Dict[str, int] = field(default_factory=dict)
    region_totals: Dict[str, int] = field(default_factory=dict)
    region_unique: Dict[str, int] = field(default_factory=dict)
    region_type_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'pages': self.pages,
            'error_pages': self.error_pages,
            'references_total': self.references_total,
            'references_unique': self.references_unique,
            'type_counts': dict(self.type_counts),
            'scope_counts': dict(self.scope_counts),
            'region_totals': dict(self.region_totals),
            'region_unique': dict(self.region_unique),
            'region_type_counts': {region: dict(types) for region, types in self.region_type_counts.items()},
        }


def summarize(pages: Iterable[PageRecord]) -> CrawlSummary:
    """Sum per-page counts into a CrawlSummary."""
    summary = CrawlSummary()
    type_counts: Counter = Counter()
    scope_counts: Counter = Counter()
    region_totals: Counter = Counter()
    region_unique: Counter = Counter()
    region_types: Dict[str, Counter] = defaultdict(Counter)

    for page in pages:
        summary.pages += 1
        if page.error:
            summary.error_pages += 1
        summary.references_total += page.total
        summary.references_unique += page.unique
        type_counts.update(page.counts)
        scope_counts.update(page.scope_counts)
        for region, count in page.region_counts.items():
            region_totals[region] += count.total
            region_unique[region] += count.unique
        for region, types in page.region_type_counts.items():
            region_types[region].update(types)

    summary.type_counts = dict(type_counts)
    summary.scope_counts = dict(scope_counts)
    summary.region_totals = dict(region_totals)
    summary.region_unique = dict(region_unique)
    summary.region_type_counts = {region: dict(types) for region, types in region_types.items()}
    return summary


def type_columns(pages: Sequence[PageRecord]) -> List[str]:
    """Base type columns followed by any other type seen, in first-seen order."""
    columns = list(BASE_TYPE_COLUMNS)
    for page in pages:
        for resource_type in page.counts:
            if resource_type not in columns:
                columns.append(resource_type)
    return columns


def region_columns(pages: Sequence[PageRecord]) -> List[str]:
    present = {region for page in pages for region in page.region_counts}
    return [region.value for region in Region if region.value in present]


class ReportWriter:
    """Writes page and summary reports into an output directory."""

    def __init__(self, directory: str = '.'):
        self.directory = Path(directory)
        self.logger = logging.getLogger(__name__)

    def _path(self, name: str) -> Path:
        path = Path(name)
        return path if path.is_absolute() else self.directory / path

    def write_pages_csv(self, pages: Sequence[PageRecord], name: str = 'pages.csv') -> Path:
        """One row per page: totals, per-region counts and types, per-type and per-scope counts, error."""
        types = type_columns(pages)
        regions = region_columns(pages)
        header = ['pageUrl', 'depth', 'total', 'unique']
        for region in regions:
            header += [f'{region.lower()}_total', f'{region.lower()}_unique', f'{region.lower()}_types']
        header += [f'type_{t}' for t in types]
        header += [f'scope_{s}' for s in SCOPE_COLUMNS]
        header.append('error')

        rows = []
        for page in pages:
            row = [page.page_url, page.depth, page.total, page.unique]
            for region in regions:
                count = page.region_counts.get(region)
                row += [count.total, count.unique] if count else [0, 0]
                row.append(json.dumps(page.region_type_counts.get(region, {}), separators=(',', ':')))
            row += [page.counts.get(t, 0) for t in types]
            row += [page.scope_counts.get(s, 0) for s in SCOPE_COLUMNS]
            row.append(page.error or '')
            rows.append(row)

        return self._write_csv(self._path(name), header, rows)

    def write_summary_csv(self, summary: CrawlSummary, name: str = 'summary.csv') -> Path:
        """``metric;value`` rows for the crawl aggregate."""
        rows = [
            ['pages', summary.pages],
            ['error_pages', summary.error_pages],
            ['urls_total', summary.references_total],
            ['urls_unique', summary.references_unique],
        ]
        for region in Region:
            if region.value in summary.region_totals:
                rows.append([f'{region.value.lower()}_total', summary.region_totals[region.value]])
                rows.append([f'{region.value.lower()}_unique', summary.region_unique.get(region.value, 0)])
                for t, count in summary.region_type_counts.get(region.value, {}).items():
                    rows.append([f'{region.value.lower()}_type_{t}', count])
        rows += [[f'type_{t}', count] for t, count in summary.type_counts.items()]
        rows += [[f'scope_{s}', count] for s, count in summary.scope_counts.items()]

        return self._write_csv(self._path(name), ['metric', 'value'], rows)

    def write_json(self, pages: Sequence[PageRecord], summary: CrawlSummary,
                   name: str = 'report.json', stats: Optional[dict] = None) -> Path:
        """Full report with every reference record."""
        data = {
            'generated_at': datetime.now(timezone.utc).isoformat(),
            'summary': summary.to_dict(),
            'stats': stats or {},
            'pages': [page.to_dict() for page in pages],
        }
        path = self._path(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise ReportError(f"Failed to write {path}: {e}")
        self.logger.info(f"JSON report saved: {path.resolve()}")
        return path

    def _write_csv(self, path: Path, header: List[str], rows: List[list]) -> Path:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8', newline='') as f:
                writer = csv.writer(f, delimiter=CSV_DELIMITER, quoting=csv.QUOTE_ALL)
                writer.writerow(header)
                writer.writerows(rows)
        except OSError as e:
            raise ReportError(f"Failed to write {path}: {e}")
        self.logger.info(f"CSV saved: {path.resolve()}")
        return path
