"""Tests for centralized logging."""

import json
import logging
import sys

from keel.infrastructure.logging import ContextFormatter, JSONFormatter, configure_logging


class TestJSONFormatter:
    def _record(self, **extra):
        record = logging.LogRecord(
            name="keel.test",
            level=logging.INFO,
            pathname="test.py",
            lineno=1,
            msg="host %s entered %s",
            args=("web1", "Install"),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(self._record()))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "keel.test"
        assert payload["message"] == "host web1 entered Install"
        assert "timestamp" in payload
        assert "host_id" not in payload

    def test_deployment_context(self):
        record = self._record(deployment_id="d-1", host_id="web1", phase="Install")
        payload = json.loads(JSONFormatter().format(record))
        assert payload["deployment_id"] == "d-1"
        assert payload["host_id"] == "web1"
        assert payload["phase"] == "Install"

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()
        payload = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]


class TestContextFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("keel.test", logging.INFO, "test.py", 1, "hook done", (), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_plain_line(self):
        line = ContextFormatter().format(self._record())
        assert line.endswith("keel.test: hook done")

    def test_context_suffix(self):
        record = self._record(
            deployment_id="0123456789abcdef", host_id="web1", phase="ApplicationStart"
        )
        line = ContextFormatter().format(record)
        assert line.endswith("hook done [01234567 web1/ApplicationStart]")


class TestConfigureLogging:
    def test_sets_level_and_single_handler(self):
        configure_logging(level=logging.DEBUG)
        configure_logging(level=logging.DEBUG)
        logger = logging.getLogger("keel")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1

    def test_json_format(self):
        configure_logging(level=logging.INFO, json_format=True)
        handler = logging.getLogger("keel").handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)

    def test_text_format(self):
        configure_logging(level=logging.INFO)
        handler = logging.getLogger("keel").handlers[0]
        assert isinstance(handler.formatter, ContextFormatter)
