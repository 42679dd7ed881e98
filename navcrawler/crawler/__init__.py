"""
Crawl engine components.

Only the leaf components are re-exported here; the page processor and the
scheduler depend on ``navcrawler.utils.config`` and are imported from their
modules directly.
"""

from .urls import normalize_url, resolve_url
from .classifier import ResourceType, Scope, ScopePolicy, classify_resource, classify_scope, in_scope
from .parser import DocumentTree, Region, RegionExtractor
from .url_frontier import URLFrontier, CrawlTask
from .fetcher import WebFetcher, FetchResult

__all__ = [
    'normalize_url', 'resolve_url',
    'ResourceType', 'Scope', 'ScopePolicy',
    'classify_resource', 'classify_scope', 'in_scope',
    'DocumentTree', 'Region', 'RegionExtractor',
    'URLFrontier', 'CrawlTask',
    'WebFetcher', 'FetchResult',
]
