"""
Report aggregation and output files.
"""

from .report import CrawlSummary, ReportError, ReportWriter, summarize

__all__ = ['CrawlSummary', 'ReportError', 'ReportWriter', 'summarize']
