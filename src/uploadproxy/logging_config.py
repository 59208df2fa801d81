"""Logging setup for the upload proxy.

One stderr handler on the root logger, in plain text or one JSON object per
line. The handler masks the service key wherever it would appear in a
rendered message.
"""

import json
import logging
import sys
from collections.abc import Iterable
from datetime import datetime, timezone

REDACTED = "[redacted]"

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SecretRedactor(logging.Filter):
    """Replaces known secret values in log messages with ``REDACTED``."""

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        self._secrets = tuple(s for s in secrets if s)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        if any(s in message for s in self._secrets):
            for secret in self._secrets:
                message = message.replace(secret, REDACTED)
            record.msg, record.args = message, None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Always carries timestamp, level, logger and message. Request fields set
    by the logging middleware and upload fields set by the upload handler
    are copied when present.
    """

    request_fields = ("method", "path", "status", "duration_ms", "request_id")
    upload_fields = ("bucket", "key", "size")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self.request_fields + self.upload_fields:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", fmt: str = "text", redact: Iterable[str] = ()) -> None:
    """Replace the root logger's handlers with a single stderr handler.

    Args:
        level: Log level name; unknown names fall back to INFO.
        fmt: 'text' or 'json'.
        redact: Secret values to mask in every message (the service key).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(numeric_level)
    for old in root.handlers[:]:
        root.removeHandler(old)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    handler.addFilter(SecretRedactor(redact))
    root.addHandler(handler)
