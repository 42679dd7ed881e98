"""Tests for logging setup and helpers."""

from __future__ import annotations

import json
import logging

import pytest

from navcrawler.utils.config import LoggingConfig
from navcrawler.utils.logger import (
    JSONFormatter,
    PerformanceFilter,
    get_crawler_logger,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(name="navcrawler.test", level=logging.INFO, msg="hello", **extra):
    record = logging.LogRecord(name, level, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_fields(self):
        data = json.loads(JSONFormatter().format(make_record(url="https://a.test/", event_type="url_event")))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "navcrawler.test"
        assert data["url"] == "https://a.test/"
        assert data["event_type"] == "url_event"

    def test_no_extra_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert "url" not in data


class TestPerformanceFilter:
    def test_suppresses_noisy_loggers(self):
        flt = PerformanceFilter()
        assert not flt.filter(make_record(name="aiohttp.access"))
        assert flt.filter(make_record(name="navcrawler.crawler"))
        assert not flt.filter(make_record(level=logging.DEBUG, msg="Connection pool is full"))


class TestCrawlerLogAdapter:
    def test_url_event(self, caplog):
        logger = get_crawler_logger("navcrawler.adapter", start_url="https://a.test/")
        with caplog.at_level(logging.INFO, logger="navcrawler.adapter"):
            logger.log_url_event(logging.INFO, "https://a.test/x", "Processed")

        [record] = caplog.records
        assert record.getMessage() == "Processed [https://a.test/x]"
        assert record.url == "https://a.test/x"
        assert record.start_url == "https://a.test/"
        assert record.event_type == "url_event"


class TestSetupLogging:
    def test_console_and_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "crawler.log"
        root = setup_logging(LoggingConfig(level="debug", file=str(log_file)))

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2
        logging.getLogger("navcrawler.test").info("written")
        for handler in root.handlers:
            handler.flush()
        assert "written" in log_file.read_text(encoding="utf-8")

    def test_json_without_file(self, restore_root_logger):
        root = setup_logging(LoggingConfig(file=None, json=True))
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
