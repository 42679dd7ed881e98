"""
Crawler scheduler: breadth-first traversal driver.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .fetcher import WebFetcher
from .page_processor import PageProcessor, PageRecord
from .url_frontier import CrawlTask, URLFrontier
from ..storage.report import CrawlSummary, summarize
from ..utils.config import CrawlConfiguration
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


DEADLINE_ERROR = "DEADLINE_EXCEEDED: crawl deadline reached"


@dataclass
class CrawlStats:
    """Statistics for crawl operations."""
    start_time: float
    pages_crawled: int = 0
    errors: int = 0
    duplicates_discarded: int = 0
    urls_enqueued: int = 0
    urls_in_queue: int = 0
    max_depth_reached: int = 0
    stopped_by: Optional[str] = None

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    @property
    def pages_per_minute(self) -> float:
        elapsed_minutes = self.elapsed_time / 60
        return self.pages_crawled / elapsed_minutes if elapsed_minutes > 0 else 0


@dataclass
class CrawlResult:
    """Result of a crawl: one PageRecord per attempted page, in crawl order."""
    pages: List[PageRecord] = field(default_factory=list)
    summary: Optional[CrawlSummary] = None
    stats: Dict[str, object] = field(default_factory=dict)


class CrawlerScheduler:
    """
    Coordinates the frontier, page processor and monitoring.

    Tasks of one depth are processed in batches of up to
    ``max_concurrent_requests``; records are appended and children enqueued
    in dequeue order, so the record sequence is the same as for a strictly
    sequential crawl.
    """

    def __init__(self, config: CrawlConfiguration, fetcher=None,
                 monitor: Optional[CrawlerMonitor] = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.url_logger = get_crawler_logger(__name__, start_url=config.start_url)

        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or WebFetcher(
            user_agent=config.user_agent,
            request_timeout=config.request_timeout,
            max_concurrent_requests=config.max_concurrent_requests,
            max_content_bytes=config.max_content_bytes,
        )
        self.processor = PageProcessor(config, self.fetcher)
        self.frontier = URLFrontier(config.param_ignore_prefixes)
        self.monitor = monitor or CrawlerMonitor()

        self.pages: List[PageRecord] = []
        self.stats = CrawlStats(start_time=time.time())
        self.is_running = False
        self._stop_requested = False

    async def initialize(self):
        """Start the fetcher session if this scheduler created the fetcher."""
        if self._owns_fetcher:
            await self.fetcher.start()

    async def run(self) -> CrawlResult:
        """
        Crawl from the configured start URL until the frontier is empty,
        ``max_pages`` records exist, the deadline passes or ``stop_crawling``
        is called.
        """
        if self.is_running:
            raise RuntimeError("Crawler is already running")

        self.is_running = True
        self._stop_requested = False
        self.pages = []
        self.frontier = URLFrontier(self.config.param_ignore_prefixes)
        self.stats = CrawlStats(start_time=time.time())
        deadline = (self.stats.start_time + self.config.max_duration
                    if self.config.max_duration else None)

        self.frontier.add_url(CrawlTask(url=self.config.start_url, depth=0))
        self.logger.info(
            f"Starting crawl of {self.config.start_url} "
            f"(max_depth={self.config.max_depth}, max_pages={self.config.max_pages}, "
            f"same_origin_only={self.config.same_origin_only}, "
            f"include_subdomains={self.config.include_subdomains}, "
            f"follow_from_header_only={self.config.follow_from_header_only})"
        )

        try:
            while not self.frontier.is_empty():
                if self._stop_requested:
                    self.stats.stopped_by = 'stop_requested'
                    break
                remaining = self.config.max_pages - len(self.pages)
                if remaining <= 0:
                    self.stats.stopped_by = 'max_pages'
                    self.logger.info(f"Reached max pages limit: {self.config.max_pages}")
                    break
                if deadline is not None and time.time() >= deadline:
                    self.stats.stopped_by = 'max_duration'
                    self.logger.info(f"Reached max duration: {self.config.max_duration} seconds")
                    break

                batch = await self.frontier.next_batch(
                    min(remaining, self.config.max_concurrent_requests)
                )
                if not batch:
                    continue

                results = await asyncio.gather(
                    *(self._process_task(task, deadline) for task in batch)
                )
                for task, (record, candidates) in zip(batch, results):
                    self._record(task, record, candidates)
        finally:
            self.is_running = False

        frontier_stats = self.frontier.get_stats()
        self.stats.urls_in_queue = frontier_stats['total_queued']
        self.stats.duplicates_discarded = frontier_stats['discarded_duplicates']
        if self.stats.stopped_by is None:
            self.stats.stopped_by = 'frontier_empty'

        self._log_final_stats()
        return CrawlResult(
            pages=list(self.pages),
            summary=summarize(self.pages),
            stats=self.get_stats(),
        )

    async def _process_task(self, task: CrawlTask,
                            deadline: Optional[float]) -> Tuple[PageRecord, List[str]]:
        start_time = time.time()
        try:
            if deadline is None:
                result = await self.processor.process(task.url, task.depth)
            else:
                result = await asyncio.wait_for(
                    self.processor.process(task.url, task.depth),
                    timeout=max(deadline - start_time, 0),
                )
        except asyncio.TimeoutError:
            self.url_logger.log_url_event(logging.WARNING, task.url, "Crawl deadline reached while processing")
            result = (PageRecord.failed(task.url, task.url, task.depth, DEADLINE_ERROR,
                                        self.config.reported_regions), [])
        except Exception as e:
            self.logger.error(f"Error processing {task.url}: {e}")
            result = (PageRecord.failed(task.url, task.url, task.depth, f"PROCESSING_ERROR: {e}",
                                        self.config.reported_regions), [])

        self.monitor.record_page(result[0], time.time() - start_time)
        return result

    def _record(self, task: CrawlTask, record: PageRecord, candidates: List[str]):
        self.pages.append(record)
        self.stats.pages_crawled += 1
        self.stats.max_depth_reached = max(self.stats.max_depth_reached, task.depth)

        if record.error:
            self.stats.errors += 1
            self.url_logger.log_url_event(logging.WARNING, task.url, f"Recorded error: {record.error}")
            return

        self.url_logger.log_url_event(
            logging.INFO, record.page_url,
            f"[{len(self.pages)}/{self.config.max_pages}] depth={task.depth} "
            f"references={record.total} unique={record.unique} candidates={len(candidates)}"
        )

        if task.depth < self.config.max_depth:
            added = self.frontier.add_urls(
                CrawlTask(url=candidate, depth=task.depth + 1, parent_url=record.page_url)
                for candidate in candidates
            )
            self.stats.urls_enqueued += added
            self.logger.debug(f"Queued {added} new URLs from {record.page_url}")

        self.monitor.update_queue_size(len(self.frontier.queue))

    def stop_crawling(self):
        """Ask a running crawl to stop after the current batch."""
        self.logger.info("Stopping crawler...")
        self._stop_requested = True

    def _log_final_stats(self):
        """Log final crawl statistics."""
        self.logger.info("=== CRAWL COMPLETED ===")
        self.logger.info(f"Pages crawled: {self.stats.pages_crawled}")
        self.logger.info(f"Errors: {self.stats.errors}")
        self.logger.info(f"Duplicates discarded: {self.stats.duplicates_discarded}")
        self.logger.info(f"Deepest level: {self.stats.max_depth_reached}")
        self.logger.info(f"Stopped by: {self.stats.stopped_by}")
        self.logger.info(f"Total time: {self.stats.elapsed_time:.2f} seconds")
        self.logger.info(f"URLs remaining in queue: {self.stats.urls_in_queue}")
        if hasattr(self.fetcher, 'get_stats'):
            self.logger.info(f"Fetcher stats: {self.fetcher.get_stats()}")

    async def close(self):
        """Close the fetcher if this scheduler created it."""
        if self._owns_fetcher:
            await self.fetcher.close()
        self.logger.info("Crawler scheduler closed")

    def get_stats(self) -> Dict[str, object]:
        """Get current crawl statistics."""
        return {
            'pages_crawled': self.stats.pages_crawled,
            'errors': self.stats.errors,
            'duplicates_discarded': self.stats.duplicates_discarded,
            'urls_enqueued': self.stats.urls_enqueued,
            'urls_in_queue': self.stats.urls_in_queue,
            'max_depth_reached': self.stats.max_depth_reached,
            'elapsed_time': self.stats.elapsed_time,
            'pages_per_minute': self.stats.pages_per_minute,
            'stopped_by': self.stats.stopped_by,
            'is_running': self.is_running,
        }


async def crawl_site_async(config: CrawlConfiguration, fetcher=None,
                           monitor: Optional[CrawlerMonitor] = None) -> CrawlResult:
    """Run a complete crawl with a fresh scheduler."""
    scheduler = CrawlerScheduler(config, fetcher=fetcher, monitor=monitor)
    await scheduler.initialize()
    try:
        return await scheduler.run()
    finally:
        await scheduler.close()


def crawl_site(config: CrawlConfiguration, fetcher=None,
               monitor: Optional[CrawlerMonitor] = None) -> CrawlResult:
    """Synchronous wrapper for crawl_site_async."""
    return asyncio.run(crawl_site_async(config, fetcher=fetcher, monitor=monitor))
