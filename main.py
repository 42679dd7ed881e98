#!/usr/bin/env python3
"""
Main entry point for the navigation crawler.
"""

import asyncio
import argparse
import logging
import os
import signal
import sys
from typing import Optional

from navcrawler import __version__
from navcrawler.crawler.parser import Region
from navcrawler.crawler.scheduler import CrawlerScheduler, CrawlResult
from navcrawler.storage.report import ReportError, ReportWriter
from navcrawler.utils.config import Config, ConfigError, load_config
from navcrawler.utils.logger import setup_logging
from navcrawler.utils.monitoring import CrawlerMonitor


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


class CrawlerApp:
    """Main application class for the crawler."""

    def __init__(self, config: Config):
        self.config = config
        self.scheduler: Optional[CrawlerScheduler] = None
        self.logger = logging.getLogger(__name__)

    def setup_signal_handlers(self):
        """Stop scheduling new pages on SIGINT/SIGTERM; the report is still written."""
        loop = asyncio.get_running_loop()

        def handle_signal(signum):
            self.logger.info(f"Received signal {signum}, initiating shutdown...")
            if self.scheduler:
                self.scheduler.stop_crawling()

        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, handle_signal, signum)
            except NotImplementedError:
                # add_signal_handler is unavailable on Windows event loops
                pass

    async def run(self, dry_run: bool = False) -> int:
        """Run the crawler and write the reports."""
        crawler_config = self.config.crawler
        self.logger.info("=== CRAWLER STARTING ===")
        self.logger.info(f"Start URL: {crawler_config.start_url}")
        self.logger.info(f"Max depth: {crawler_config.max_depth}, max pages: {crawler_config.max_pages}")
        self.logger.info(f"Regions: {', '.join(r.value for r in crawler_config.reported_regions)}")

        if dry_run:
            self.logger.info("DRY RUN MODE: configuration is valid, no crawling performed")
            return EXIT_OK

        monitor = CrawlerMonitor(
            enable_server=self.config.monitoring.metrics_enabled,
            prometheus_port=self.config.monitoring.prometheus_port,
        )
        monitor.start_server()

        self.scheduler = CrawlerScheduler(crawler_config, monitor=monitor)
        self.setup_signal_handlers()
        try:
            await self.scheduler.initialize()
            result = await self.scheduler.run()
        finally:
            await self.scheduler.close()

        try:
            self.write_reports(result)
        except ReportError as e:
            self.logger.error(str(e))
            return EXIT_FAILURE

        if self.config.output.metrics_json:
            metrics_path = os.path.join(self.config.output.directory, self.config.output.metrics_json)
            try:
                monitor.export_metrics_json(metrics_path)
            except OSError as e:
                self.logger.error(f"Failed to export metrics to {metrics_path}: {e}")
                return EXIT_FAILURE

        summary = monitor.get_summary()
        self.logger.info(
            f"Crawled {summary['pages_crawled']:.0f} pages in {summary['runtime_seconds']:.1f}s "
            f"({summary['pages_per_minute']:.1f} pages/min)"
        )
        self.logger.info("=== CRAWLER FINISHED ===")
        return EXIT_OK

    def write_reports(self, result: CrawlResult):
        output = self.config.output
        writer = ReportWriter(output.directory)
        writer.write_pages_csv(result.pages, output.pages_csv)
        writer.write_summary_csv(result.summary, output.summary_csv)
        if output.json_report:
            writer.write_json(result.pages, result.summary, output.json_report, stats=result.stats)

        summary = result.summary
        self.logger.info(f"Pages: {summary.pages} ({summary.error_pages} with errors)")
        for region, unique in summary.region_unique.items():
            self.logger.info(f"{region} URLs unique per page, summed: {unique}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crawl a site breadth-first and count the URLs referenced from "
                    "each page's header, main content and footer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com                  # defaults, reports in current directory
  python main.py --config crawl.yaml                  # settings from a YAML file
  python main.py https://example.com --max-depth 1    # start page and its links only
  python main.py https://example.com --header-only    # header inventory only
  python main.py https://example.com --dry-run        # validate configuration only
        """
    )

    parser.add_argument('start_url', nargs='?', help='Start URL (overrides config and START_URL)')
    parser.add_argument('--config', help='Path to a YAML configuration file')
    parser.add_argument('--max-depth', type=int, help='Maximum link depth (0 = start page only)')
    parser.add_argument('--max-pages', type=int, help='Maximum number of pages to crawl')
    parser.add_argument('--max-duration', type=float, help='Overall crawl deadline in seconds')
    parser.add_argument('--concurrency', type=int, help='Pages fetched concurrently within one depth level')
    parser.add_argument('--include-subdomains', action='store_true', default=None,
                        help='Treat subdomains of the start host as internal (disables same-origin mode)')
    parser.add_argument('--follow-all-links', action='store_true',
                        help='Recurse into internal links of the whole page, not just the header')
    parser.add_argument('--header-only', action='store_true', help='Report header references only')
    parser.add_argument('--output-dir', help='Directory for the report files')
    parser.add_argument('--json', dest='json_report', nargs='?', const='report.json',
                        help='Also write a JSON report (default name: report.json)')
    parser.add_argument('--metrics-json', nargs='?', const='metrics.json',
                        help='Export metric samples as JSON (default name: metrics.json)')
    parser.add_argument('--log-level', help='Logging level (DEBUG, INFO, ...)')
    parser.add_argument('--dry-run', action='store_true', help='Validate configuration without crawling')
    parser.add_argument('--version', action='version', version=f'navcrawler {__version__}')
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    crawler = {
        'start_url': args.start_url,
        'max_depth': args.max_depth,
        'max_pages': args.max_pages,
        'max_duration': args.max_duration,
        'max_concurrent_requests': args.concurrency,
    }
    if args.include_subdomains:
        crawler['same_origin_only'] = False
        crawler['include_subdomains'] = True
    if args.follow_all_links:
        crawler['follow_from_header_only'] = False
    if args.header_only:
        crawler['reported_regions'] = [Region.HEADER.value]

    return {
        'crawler': crawler,
        'output': {'directory': args.output_dir, 'json_report': args.json_report,
                   'metrics_json': args.metrics_json},
        'logging': {'level': args.log_level},
    }


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, environ=os.environ, overrides=overrides_from_args(args))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.logging)
    app = CrawlerApp(config)
    try:
        return asyncio.run(app.run(dry_run=args.dry_run))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
