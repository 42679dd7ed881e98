"""
URL Frontier: FIFO queue of crawl tasks plus the visited set.
"""

import asyncio
import logging
from typing import Deque, Dict, Iterable, List, Optional, Set
from dataclasses import dataclass
from collections import deque

from .urls import normalize_url


@dataclass(frozen=True)
class CrawlTask:
    """Represents a URL crawling task."""
    url: str
    depth: int
    parent_url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'url': self.url,
            'depth': self.depth,
            'parent_url': self.parent_url,
        }


class URLFrontier:
    """
    Breadth-first frontier.

    Tasks leave the queue in insertion order. The visited set holds
    normalized URLs; a task is claimed for processing by an atomic
    check-and-mark, so two tasks that normalize to the same key are never
    both processed.
    """

    def __init__(self, ignore_prefixes: Iterable[str] = ()):
        self.ignore_prefixes = tuple(ignore_prefixes)
        self.logger = logging.getLogger(__name__)

        self.queue: Deque[CrawlTask] = deque()
        self.visited: Set[str] = set()
        self._lock = asyncio.Lock()

        self.stats = {
            'enqueued': 0,
            'skipped_visited': 0,
            'discarded_duplicates': 0,
        }

    def key_for(self, url: str) -> str:
        """Visited-set key of a URL."""
        return normalize_url(url, self.ignore_prefixes)

    def is_visited(self, url: str) -> bool:
        return self.key_for(url) in self.visited

    def add_url(self, task: CrawlTask) -> bool:
        """
        Add a task to the frontier.
        Returns True if the task was queued, False if its URL is already visited.
        """
        if self.is_visited(task.url):
            self.stats['skipped_visited'] += 1
            return False

        self.queue.append(task)
        self.stats['enqueued'] += 1
        self.logger.debug(f"Added URL to frontier: {task.url} (depth {task.depth})")
        return True

    def add_urls(self, tasks: Iterable[CrawlTask]) -> int:
        """Add multiple tasks to the frontier. Returns count of queued tasks."""
        added_count = 0
        for task in tasks:
            if self.add_url(task):
                added_count += 1
        return added_count

    async def claim(self, task: CrawlTask) -> bool:
        """Mark a task's URL visited. Returns False if it already was."""
        key = self.key_for(task.url)
        async with self._lock:
            if key in self.visited:
                return False
            self.visited.add(key)
            return True

    async def get_next_url(self) -> Optional[CrawlTask]:
        """
        Pop tasks until one is claimed.
        Returns None once the queue is exhausted.
        """
        while self.queue:
            task = self.queue.popleft()
            if await self.claim(task):
                self.logger.debug(f"Retrieved URL from frontier: {task.url}")
                return task
            self.stats['discarded_duplicates'] += 1
            self.logger.debug(f"Discarding already visited URL: {task.url}")
        return None

    async def next_batch(self, limit: int) -> List[CrawlTask]:
        """
        Claim up to ``limit`` tasks of the same depth.

        The batch stops at the first queued task of a different depth, so a
        level is fully processed (and its children enqueued) before the next
        level starts.
        """
        batch: List[CrawlTask] = []
        while len(batch) < limit and self.queue:
            if batch and self.queue[0].depth != batch[0].depth:
                break
            task = self.queue.popleft()
            if await self.claim(task):
                batch.append(task)
            else:
                self.stats['discarded_duplicates'] += 1
                self.logger.debug(f"Discarding already visited URL: {task.url}")
        return batch

    def get_stats(self) -> Dict[str, int]:
        """Get frontier statistics."""
        return {
            'total_queued': len(self.queue),
            'total_visited': len(self.visited),
            **self.stats,
        }

    def is_empty(self) -> bool:
        """Check if the frontier is empty."""
        return not self.queue
