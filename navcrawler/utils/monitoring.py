"""
Monitoring and metrics collection for the crawler.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class CrawlerMonitor:
    """
    Prometheus metrics for a crawl run.

    Each monitor owns its registry, so several crawls (or tests) in one
    process never share counters.
    """

    def __init__(self, enable_server: bool = False, prometheus_port: int = 8000,
                 registry: Optional[CollectorRegistry] = None):
        self.logger = logging.getLogger(__name__)
        self.enable_server = enable_server
        self.prometheus_port = prometheus_port
        self.registry = registry or CollectorRegistry()
        self.start_time = time.time()

        self.pages_crawled = Counter(
            'navcrawler_pages_crawled_total',
            'Pages processed, including failed ones',
            registry=self.registry,
        )
        self.page_errors = Counter(
            'navcrawler_page_errors_total',
            'Pages recorded with an error',
            ['error_kind'],
            registry=self.registry,
        )
        self.references = Counter(
            'navcrawler_references_total',
            'Reported references by resource type and scope',
            ['resource_type', 'scope'],
            registry=self.registry,
        )
        self.queue_size = Gauge(
            'navcrawler_queue_size',
            'Tasks waiting in the frontier',
            registry=self.registry,
        )
        self.page_time = Histogram(
            'navcrawler_page_processing_seconds',
            'Time spent processing one page',
            registry=self.registry,
        )

    def start_server(self):
        """Start the Prometheus HTTP exporter if enabled."""
        if not self.enable_server:
            return
        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def record_page(self, record, processing_time: float = 0.0):
        """Record a finished PageRecord."""
        self.pages_crawled.inc()
        self.page_time.observe(processing_time)
        if record.error:
            self.page_errors.labels(error_kind=error_kind(record.error)).inc()
            return
        for reference in record.references:
            self.references.labels(
                resource_type=str(reference.resource_type),
                scope=reference.scope.value,
            ).inc()

    def update_queue_size(self, size: int):
        self.queue_size.set(size)

    def value(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, 0.0 when it was never recorded."""
        return self.registry.get_sample_value(name, labels or {}) or 0.0

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the main metrics."""
        runtime = time.time() - self.start_time
        pages = self.value('navcrawler_pages_crawled_total')
        return {
            'runtime_seconds': runtime,
            'pages_crawled': pages,
            'pages_per_minute': pages / (runtime / 60) if runtime > 0 else 0,
        }

    def export_metrics_json(self, file_path: str):
        """Export current metric samples to a JSON file."""
        export_data = {
            'export_time': datetime.now(timezone.utc).isoformat(),
            'metrics': {},
        }
        for metric in self.registry.collect():
            export_data['metrics'][metric.name] = [
                {'name': sample.name, 'labels': sample.labels, 'value': sample.value}
                for sample in metric.samples
            ]

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(export_data, f, indent=2)

        self.logger.info(f"Metrics exported to {file_path}")


def error_kind(error: str) -> str:
    """Error kind prefix of a PageRecord error, e.g. ``FETCH_ERROR``."""
    kind, sep, _ = error.partition(':')
    return kind.strip() if sep else 'OTHER'
