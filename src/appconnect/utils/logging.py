"""
AppConnect Structured Logging.

- Structured JSON output in production
- Human-readable output for development
- Sensitive data filtering (keys, CSRs, certificates never reach the log)

Usage:
    from appconnect.utils.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Enrolled", extra={"application": "orders"})
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Sensitive field patterns to filter from logs
SENSITIVE_PATTERNS = frozenset(
    {
        "private_key",
        "privatekey",
        "csr",
        "certificate",
        "clientcrt",
        "secret",
        "token",
        "password",
    }
)

# Attributes present on every LogRecord
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


def _is_sensitive_key(key: str) -> bool:
    """Check if a key name suggests sensitive data."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)


def _filter_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively filter sensitive values from a dictionary."""
    filtered = {}
    for key, value in data.items():
        if _is_sensitive_key(key):
            filtered[key] = "[REDACTED]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive(value)
        else:
            filtered[key] = value
    return filtered


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}
        if extra:
            log_entry["extra"] = _filter_sensitive(extra)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Returns a logger configured from AppConnect settings."""
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)

        # In production, use JSON. In dev, use standard format.
        try:
            from ..config import settings
            env = settings.ENVIRONMENT
            lvl = settings.LOG_LEVEL
        except (ImportError, AttributeError):
            env = "development"
            lvl = "INFO"

        if env == "production":
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            ))

        logger.addHandler(handler)
        logger.setLevel(level or lvl)
        logger.propagate = False

    return logger
