"""
Utility modules for the crawler.
"""

from .config import Config, ConfigError, ConfigManager, CrawlConfiguration, load_config

__all__ = ['Config', 'ConfigError', 'ConfigManager', 'CrawlConfiguration', 'load_config']
