"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from uploadproxy.logging_config import (
    REDACTED,
    JSONFormatter,
    SecretRedactor,
    configure_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("uploadproxy.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "uploadproxy.test"
        assert entry["message"] == "hello"
        assert "timestamp" in entry

    def test_request_and_upload_extras(self):
        entry = json.loads(
            JSONFormatter().format(
                _record(method="PUT", status=201, request_id="ABC", bucket="b", key="k", size=3)
            )
        )
        assert entry["method"] == "PUT"
        assert entry["status"] == 201
        assert entry["request_id"] == "ABC"
        assert entry["bucket"] == "b"
        assert entry["key"] == "k"
        assert entry["size"] == 3

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad" in entry["exception"]


class TestConfigureLogging:
    def test_json_format(self, restore_root_logger):
        configure_logging(level="DEBUG", fmt="json")
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_text_format_replaces_handlers(self, restore_root_logger):
        configure_logging(level="WARNING", fmt="text")
        configure_logging(level="WARNING", fmt="text")
        assert len(restore_root_logger.handlers) == 1
        assert not isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_defaults_to_info(self, restore_root_logger):
        configure_logging(level="chatty")
        assert restore_root_logger.level == logging.INFO

    def test_redacts_configured_secret(self, restore_root_logger):
        configure_logging(fmt="json", redact=["service-role-secret"])
        handler = restore_root_logger.handlers[0]
        record = _record("Authorization: Bearer service-role-secret")
        assert handler.filter(record)
        entry = json.loads(handler.format(record))
        assert entry["message"] == f"Authorization: Bearer {REDACTED}"


class TestSecretRedactor:
    def test_secret_in_args_masked(self):
        record = logging.LogRecord(
            "uploadproxy.test", logging.INFO, __file__, 1, "key=%s", ("s3cr3t",), None
        )
        assert SecretRedactor(["s3cr3t"]).filter(record)
        assert record.getMessage() == f"key={REDACTED}"

    def test_message_without_secret_untouched(self):
        record = logging.LogRecord(
            "uploadproxy.test", logging.INFO, __file__, 1, "%d bytes", (42,), None
        )
        SecretRedactor(["s3cr3t"]).filter(record)
        assert record.msg == "%d bytes"
        assert record.args == (42,)

    def test_empty_secret_ignored(self):
        """An unset service key must not turn every message into REDACTED."""
        record = _record("hello")
        SecretRedactor([""]).filter(record)
        assert record.getMessage() == "hello"
