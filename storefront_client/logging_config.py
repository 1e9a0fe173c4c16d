"""Structured JSON logging configuration.

Configures Python logging to emit JSON-formatted log entries with required
fields: request_id, level, timestamp. Request-specific fields are added
contextually (endpoint, method, attempt, error_reason for failures;
status_code, duration_ms for completed requests).

SECURITY: Never logs bearer tokens, passwords or other secrets.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

from storefront_client.config.settings import ClientSettings

# Patterns that should be redacted from log output
_SENSITIVE_PATTERNS = re.compile(
    r"(api.key|secret|password|token|authorization)"
    r"[\s]*[=:]\s*(bearer\s+)?\S+",
    re.IGNORECASE,
)
_BEARER_PATTERN = re.compile(r"bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)

_REQUEST_FIELDS = ("endpoint", "method", "status_code", "attempt", "duration_ms")


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields.

    Each entry contains at minimum: request_id, level, timestamp, message.
    Additional fields can be attached via the ``extra`` dict on log calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._sanitize(record.getMessage()),
            "request_id": getattr(record, "request_id", None),
        }

        for name in _REQUEST_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if hasattr(record, "error_reason"):
            entry["error_reason"] = self._sanitize(str(getattr(record, "error_reason")))

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self._sanitize(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)

    @staticmethod
    def _sanitize(text: str) -> str:
        """Remove sensitive values from log text."""
        text = _SENSITIVE_PATTERNS.sub("[REDACTED]", text)
        return _BEARER_PATTERN.sub("[REDACTED]", text)


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger with JSON formatting.

    Parameters
    ----------
    level:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to
        ``ClientSettings().log_level`` (``STOREFRONT_LOG_LEVEL``).
    """
    if level is None:
        level = ClientSettings().log_level
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
