"""Tests for structured logging setup."""

from __future__ import annotations

import json

import structlog

from amm_core.logging import bind_market, clear_market, get_logger, setup_logging


class TestSetupLogging:
    def test_json_format(self, capsys):
        setup_logging(level="INFO", log_format="json")
        logger = get_logger("test_json")
        logger.info("test message", market_id="m1")

        captured = capsys.readouterr()
        line = json.loads(captured.err.strip())
        assert line["event"] == "test message"
        assert line["market_id"] == "m1"
        assert line["level"] == "info"
        assert "timestamp" in line

    def test_console_format(self, capsys):
        setup_logging(level="INFO", log_format="console")
        logger = get_logger("test_console")
        logger.info("hello console", key="fed-cut")

        captured = capsys.readouterr()
        assert "hello console" in captured.err
        assert "fed-cut" in captured.err

    def test_log_level_filtering(self, capsys):
        setup_logging(level="WARNING", log_format="json")
        logger = get_logger("test_level")
        logger.info("should be hidden")
        logger.warning("should appear")

        captured = capsys.readouterr()
        assert "should be hidden" not in captured.err
        assert "should appear" in captured.err

    def test_get_logger_with_context(self, capsys):
        setup_logging(level="INFO", log_format="json")
        logger = get_logger("test_ctx", key="fed-cut", component="mirror")
        logger.info("context test")

        captured = capsys.readouterr()
        line = json.loads(captured.err.strip())
        assert line["key"] == "fed-cut"
        assert line["component"] == "mirror"

    def test_bind_market(self, capsys):
        setup_logging(level="INFO", log_format="json")
        structlog.contextvars.clear_contextvars()
        bind_market("m42")

        logger = get_logger("test_bind")
        logger.info("bound")
        clear_market()
        logger.info("unbound")

        lines = [json.loads(x) for x in capsys.readouterr().err.strip().splitlines()]
        assert lines[0]["market_id"] == "m42"
        assert "market_id" not in lines[1]

        structlog.contextvars.clear_contextvars()

    def test_noisy_loggers_quieted(self):
        import logging

        setup_logging(level="INFO", log_format="json")
        assert logging.getLogger("httpx").level == logging.WARNING
