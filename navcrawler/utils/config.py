"""
Configuration management for the crawler.

Configuration is read once at startup (YAML file, then environment
overrides, then explicit overrides) into frozen dataclasses that are passed
to every component. Nothing else reads the environment.
"""

import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple
from dataclasses import dataclass, field, fields
from urllib.parse import urlsplit

import soupsieve

from ..crawler.classifier import ScopePolicy
from ..crawler.parser import DEFAULT_URL_ATTRIBUTES, Region


logger = logging.getLogger(__name__)

DEFAULT_HEADER_SELECTOR = 'header, [role="banner"], .header, .site-header'
DEFAULT_FOOTER_SELECTOR = 'footer, [role="contentinfo"], .footer, .site-footer'
DEFAULT_PARAM_IGNORE = ('utm_', 'gclid', 'fbclid', 'mc_', 'pk_')
DEDUP_SCOPES = ('region', 'page')


class ConfigError(ValueError):
    """Raised for configuration problems detected before the crawl starts."""


@dataclass(frozen=True)
class CrawlConfiguration:
    """Configuration for crawl behavior."""
    start_url: str = ''
    max_depth: int = 2
    max_pages: int = 300
    same_origin_only: bool = True
    include_subdomains: bool = False
    param_ignore_prefixes: Tuple[str, ...] = DEFAULT_PARAM_IGNORE
    header_selector: str = DEFAULT_HEADER_SELECTOR
    footer_selector: str = DEFAULT_FOOTER_SELECTOR
    follow_from_header_only: bool = True
    fallback_to_page_links: bool = True
    dedup_by_url: bool = True
    dedup_scope: str = 'region'
    reported_regions: Tuple[Region, ...] = (Region.HEADER, Region.MAIN, Region.FOOTER)
    url_attributes: Tuple[str, ...] = DEFAULT_URL_ATTRIBUTES
    user_agent: str = 'navcrawler/1.0'
    request_timeout: float = 30.0
    max_concurrent_requests: int = 4
    max_duration: Optional[float] = None
    max_content_bytes: int = 10 * 1024 * 1024

    @property
    def scope_policy(self) -> ScopePolicy:
        return ScopePolicy(
            same_origin_only=self.same_origin_only,
            include_subdomains=self.include_subdomains,
        )


@dataclass(frozen=True)
class OutputConfig:
    """Configuration for report files."""
    directory: str = '.'
    pages_csv: str = 'pages.csv'
    summary_csv: str = 'summary.csv'
    json_report: Optional[str] = None
    metrics_json: Optional[str] = None


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: Optional[str] = 'logs/crawler.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass(frozen=True)
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass(frozen=True)
class Config:
    """Main configuration class."""
    crawler: CrawlConfiguration = field(default_factory=CrawlConfiguration)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def to_bool(value: Any, default: bool) -> bool:
    """Interpret ``1/true/yes`` (any case) as True; None keeps the default."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes')


def to_int(value: Any, default: int) -> int:
    """Parse an integer; unparseable values keep the default."""
    if value is None:
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def split_list(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(',') if item.strip())


ENV_OVERRIDES = {
    'START_URL': ('crawler', 'start_url', str),
    'MAX_DEPTH': ('crawler', 'max_depth', to_int),
    'MAX_PAGES': ('crawler', 'max_pages', to_int),
    'SAME_ORIGIN_ONLY': ('crawler', 'same_origin_only', to_bool),
    'INCLUDE_SUBDOMAINS': ('crawler', 'include_subdomains', to_bool),
    'DEDUP_BY_URL': ('crawler', 'dedup_by_url', to_bool),
    'FOLLOW_FROM_HEADER_ONLY': ('crawler', 'follow_from_header_only', to_bool),
    'PARAM_IGNORE': ('crawler', 'param_ignore_prefixes', split_list),
    'HEADER_SELECTORS': ('crawler', 'header_selector', str),
    'FOOTER_SELECTORS': ('crawler', 'footer_selector', str),
    'PAGES_CSV': ('output', 'pages_csv', str),
    'SUMMARY_CSV': ('output', 'summary_csv', str),
}


class ConfigManager:
    """Loads, merges and validates configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self, environ: Optional[Mapping[str, str]] = None,
                    overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
        """
        Build the configuration.

        Args:
            environ: Environment mapping to read overrides from (not read
                implicitly; pass ``os.environ`` from the entry point)
            overrides: Per-section values that win over file and environment,
                e.g. ``{'crawler': {'max_depth': 1}}``. None values are ignored.

        Raises:
            ConfigError: If the file is missing or a value is invalid
        """
        sections: Dict[str, Dict[str, Any]] = {
            'crawler': {}, 'output': {}, 'logging': {}, 'monitoring': {}
        }

        if self.config_path is not None:
            if not self.config_path.exists():
                raise ConfigError(f"Configuration file not found: {self.config_path}")
            with open(self.config_path, 'r', encoding='utf-8') as file:
                config_data = yaml.safe_load(file) or {}
            if not isinstance(config_data, dict):
                raise ConfigError(f"Configuration file must contain a mapping: {self.config_path}")
            for name in sections:
                sections[name].update(config_data.get(name) or {})

        for variable, (section, key, convert) in ENV_OVERRIDES.items():
            raw = (environ or {}).get(variable)
            if raw is None or raw == '':
                continue
            if convert in (to_int, to_bool):
                current = sections[section].get(key, _default_of(section, key))
                sections[section][key] = convert(raw, current)
            else:
                sections[section][key] = convert(raw)

        for section, values in (overrides or {}).items():
            sections[section].update({k: v for k, v in values.items() if v is not None})

        self._config = Config(
            crawler=_build_crawler_config(sections['crawler']),
            output=_build(OutputConfig, sections['output'], 'output'),
            logging=_build(LoggingConfig, sections['logging'], 'logging'),
            monitoring=_build(MonitoringConfig, sections['monitoring'], 'monitoring'),
        )

        self._validate_config()
        return self._config

    def _validate_config(self):
        """Validate configuration values."""
        crawler = self.config.crawler

        parsed = urlsplit(crawler.start_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ConfigError(f"start_url must be an absolute http(s) URL, got {crawler.start_url!r}")
        try:
            parsed.port
        except ValueError as e:
            raise ConfigError(f"Invalid start_url {crawler.start_url!r}: {e}")

        if crawler.max_depth < 0:
            raise ConfigError("max_depth must be non-negative")

        if crawler.max_pages < 1:
            raise ConfigError("max_pages must be at least 1")

        if crawler.max_concurrent_requests < 1:
            raise ConfigError("max_concurrent_requests must be at least 1")

        if crawler.request_timeout <= 0:
            raise ConfigError("request_timeout must be positive")

        if crawler.max_duration is not None and crawler.max_duration <= 0:
            raise ConfigError("max_duration must be positive when set")

        if crawler.dedup_scope not in DEDUP_SCOPES:
            raise ConfigError(f"dedup_scope must be one of {', '.join(DEDUP_SCOPES)}")

        if not crawler.reported_regions:
            raise ConfigError("reported_regions must name at least one region")

        for name, selector in (('header_selector', crawler.header_selector),
                               ('footer_selector', crawler.footer_selector)):
            try:
                soupsieve.compile(selector)
            except soupsieve.SelectorSyntaxError as e:
                raise ConfigError(f"Invalid {name} {selector!r}: {e}")

        logger.info("Configuration validation passed")

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def _default_of(section: str, key: str) -> Any:
    section_types = {
        'crawler': CrawlConfiguration,
        'output': OutputConfig,
        'logging': LoggingConfig,
        'monitoring': MonitoringConfig,
    }
    return getattr(section_types[section](), key)


def _build(cls, values: Dict[str, Any], section: str):
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown {section} option(s): {', '.join(sorted(unknown))}")
    return cls(**values)


def _build_crawler_config(values: Dict[str, Any]) -> CrawlConfiguration:
    values = dict(values)

    for key in ('param_ignore_prefixes', 'url_attributes'):
        if key in values:
            raw = values[key]
            items = split_list(raw) if isinstance(raw, str) else tuple(raw or ())
            # ordered, without duplicates
            values[key] = tuple(dict.fromkeys(str(item) for item in items if item))

    if 'reported_regions' in values:
        raw = values['reported_regions']
        names = split_list(raw) if isinstance(raw, str) else tuple(raw or ())
        try:
            values['reported_regions'] = tuple(
                dict.fromkeys(name if isinstance(name, Region) else Region(str(name).upper())
                              for name in names)
            )
        except ValueError as e:
            raise ConfigError(f"Unknown region in reported_regions: {e}")

    for key in ('max_depth', 'max_pages', 'max_concurrent_requests', 'max_content_bytes'):
        if key in values and not isinstance(values[key], int):
            raise ConfigError(f"{key} must be an integer")

    return _build(CrawlConfiguration, values, 'crawler')


def load_config(config_path: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None,
                overrides: Optional[Dict[str, Dict[str, Any]]] = None) -> Config:
    """Load configuration from file, environment mapping and overrides."""
    return ConfigManager(config_path).load_config(environ=environ, overrides=overrides)
