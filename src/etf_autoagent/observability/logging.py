"""JSON-lines logging for the planner, executor and verification server.

Structured context is attached with ``extra={"extra_fields": {...}}``.
Fields whose names look like credentials (Privy app secret, Flare private
key, bearer and OAuth tokens) are masked before a line is written.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

SERVICE_NAME = "etf-autoagent"
REDACTED = "***"
SENSITIVE_KEY_PARTS = ("secret", "private_key", "api_key", "apikey", "token", "authorization", "password")

_RECORD_ATTRS = frozenset(
    logging.LogRecord("n", logging.INFO, "p", 1, "m", None, None).__dict__
) | {"message", "asctime", "taskName"}


def is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in SENSITIVE_KEY_PARTS)


def redact(fields: dict[str, Any]) -> dict[str, Any]:
    """Masks credential-like values, recursing into nested dicts."""
    clean: dict[str, Any] = {}
    for key, value in fields.items():
        if is_sensitive(key):
            clean[key] = REDACTED
        elif isinstance(value, dict):
            clean[key] = redact(value)
        else:
            clean[key] = value
    return clean


class JsonFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def __init__(self, service: str = SERVICE_NAME):
        super().__init__()
        self.service = service

    def _context(self, record: logging.LogRecord) -> dict[str, Any]:
        context: dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            if key == "extra_fields" and isinstance(value, dict):
                context.update(value)
            else:
                context[key] = value
        return redact(context)

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service,
            "component": record.name,
            "message": record.getMessage(),
        }
        entry.update(self._context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """Points the root logger at a single JSON handler.

    Args:
        level: Log level name. Defaults to LOG_LEVEL or INFO.
        stream: Destination. Defaults to stdout.
    """
    root = logging.getLogger()
    root.setLevel((level or os.environ.get("LOG_LEVEL", "INFO")).upper())
    for existing in root.handlers[:]:
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)

    # urllib3 logs every Twitter/Privy/verifier request at DEBUG
    logging.getLogger("urllib3").setLevel(max(root.level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
