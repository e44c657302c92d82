"""Structured JSON logging configuration.

Configures Python logging to emit JSON-formatted log entries with required
fields: level, timestamp, logger, message. Request fields (method, url,
status_code, duration_ms, deduplicated) and store fields (store, action,
entity_id) are added contextually via ``extra``.

SECURITY: Never logs bearer tokens, authorization headers or passwords.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone


# Patterns that should be redacted from log output
_SENSITIVE_PATTERNS = re.compile(
    r"(auth.token|access.token|token|secret|password|authorization)"
    r"[\s]*[=:]\s*(bearer\s+)?\S+",
    re.IGNORECASE,
)

_EXTRA_FIELDS = (
    # Request gateway
    "method",
    "url",
    "status_code",
    "duration_ms",
    "deduplicated",
    # Entity stores
    "store",
    "action",
    "entity_id",
)


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON with structured fields.

    Each entry contains at minimum: level, timestamp, logger, message.
    Additional fields can be attached via the ``extra`` dict on log calls.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": self._sanitize(record.getMessage()),
        }

        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)

        if "url" in entry:
            entry["url"] = self._sanitize(str(entry["url"]))

        # Exception info
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self._sanitize(
                self.formatException(record.exc_info)
            )

        return json.dumps(entry, default=str)

    @staticmethod
    def _sanitize(text: str) -> str:
        """Remove sensitive values from log text."""
        return _SENSITIVE_PATTERNS.sub("[REDACTED]", text)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger with JSON formatting.

    Parameters
    ----------
    level:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
