"""Tests for structured logging configuration."""

import json
import logging

import structlog

from cli.logging_config import _redact_sensitive, setup_logging


class TestLoggingConfig:
    """Test structlog setup modes."""

    def test_level_filtering(self):
        """Log level filters lower messages."""
        setup_logging(json_mode=False, level="WARNING")
        root = logging.getLogger()
        assert root.level == logging.WARNING

    def test_invalid_level_defaults_to_info(self):
        setup_logging(json_mode=True, level="LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_log_file_receives_json(self, tmp_path):
        log_file = tmp_path / "logs" / "steward.log"
        setup_logging(json_mode=False, level="WARNING", log_file=log_file)
        logging.getLogger("steward.test").debug("written to file")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = [line for line in log_file.read_text().splitlines() if line.strip()]
        assert lines
        assert json.loads(lines[-1])["event"] == "written to file"
        # console handler still filters at the configured level
        assert logging.getLogger().handlers[0].level == logging.WARNING

    def test_handlers_not_duplicated(self):
        setup_logging(level="INFO")
        setup_logging(level="INFO")
        assert len(logging.getLogger().handlers) == 1


class TestRedaction:
    def test_redacts_anthropic_key(self):
        event = {"event": "key is sk-ant-REDACTED"}
        result = _redact_sensitive(None, None, event)
        assert "REDACTED" in result["event"]
        assert "qrstuvwxyz" not in result["event"]

    def test_leaves_plain_text(self):
        event = {"event": "search.completed", "hits": 3}
        assert _redact_sensitive(None, None, dict(event)) == event

    def test_structlog_still_usable(self):
        setup_logging(json_mode=True, level="INFO")
        structlog.get_logger().info("smoke", key="value")
