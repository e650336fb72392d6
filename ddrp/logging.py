"""
Structured Logging — JSON Lines for Detection and Ledger Events

The library only creates loggers under the "ddrp" namespace and attaches
context through `extra=`; it never installs handlers itself. A process
that wants output calls setup_logging() once.

Only whitelisted context keys reach the JSON output, so a log line never
carries document text, only counts, hashes and identifiers.

Usage:
    from ddrp.logging import get_logger, setup_logging
    setup_logging(level="DEBUG", fmt="json")
    logger = get_logger("ledger")
    logger.info("Transaction appended", extra={"sequence": 3, "transaction_hash": h})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

ROOT_LOGGER = "ddrp"

LOG_LEVEL = os.getenv("DDRP_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.getenv("DDRP_LOG_FORMAT", "json")  # "json" or "text"

# Context keys emitted by ddrp modules, grouped by emitter.
EXTRA_FIELDS = (
    # detector / obligations
    "pattern_count", "match_count", "obligation_count", "input_hash",
    "pattern_id", "duration_ms",
    # ledger
    "transaction_hash", "sequence", "ledger_dir", "record_count", "error_count",
    # failures (detector abort, PDF ingest)
    "error", "error_type",
)


def context_of(record: logging.LogRecord) -> dict[str, Any]:
    """Whitelisted extra fields present on record, in EXTRA_FIELDS order."""
    context = {}
    for key in EXTRA_FIELDS:
        value = getattr(record, key, None)
        if value is not None:
            context[key] = value
    return context


class JSONFormatter(logging.Formatter):
    """One JSON object per line. Timestamps come from the record, in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(context_of(record))
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines, with the whitelisted context appended as key=value."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = context_of(record)
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def setup_logging(
    level: str = LOG_LEVEL,
    fmt: str = LOG_FORMAT,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Install a single handler on the ddrp logger. Safe to call again."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
    return root


def get_logger(name: str) -> logging.Logger:
    """Named logger under the ddrp namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
