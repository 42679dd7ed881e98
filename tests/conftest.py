"""Shared fixtures: an in-memory fetcher and configuration helpers."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Dict, List, Optional, Union

import pytest

from navcrawler.crawler.fetcher import FetchResult
from navcrawler.crawler.urls import normalize_url
from navcrawler.utils.config import CrawlConfiguration


START_URL = "https://a.test/"


def html_result(url: str, body: str, final_url: Optional[str] = None) -> FetchResult:
    return FetchResult(
        url=url,
        final_url=final_url or url,
        status_code=200,
        content_type="text/html; charset=utf-8",
        content=body,
    )


def page(header: str = "", main: str = "", footer: str = "") -> str:
    return (
        "<html><body>"
        f"<header>{header}</header>"
        f"<main>{main}</main>"
        f"<footer>{footer}</footer>"
        "</body></html>"
    )


class FakeFetcher:
    """Serves canned responses keyed by normalized URL and records every call."""

    def __init__(self, pages: Dict[str, Union[str, FetchResult]], delay: float = 0.0):
        self.pages = {normalize_url(url): value for url, value in pages.items()}
        self.delay = delay
        self.calls: List[str] = []

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        value = self.pages.get(normalize_url(url))
        if value is None:
            return FetchResult(url=url, final_url=url, status_code=404,
                               content_type="text/html", content="")
        if isinstance(value, FetchResult):
            return replace(value, url=url)
        return html_result(url, value)

    def get_stats(self) -> dict:
        return {"total_requests": len(self.calls)}


@pytest.fixture
def crawl_config() -> CrawlConfiguration:
    return CrawlConfiguration(start_url=START_URL, max_depth=2, max_pages=50)
