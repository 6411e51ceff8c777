"""
Structured Logging
==================

JSON logs on stdout, one object per line.

Every record carries:
- timestamp (UTC, ISO 8601) and environment
- correlation_id of the request that produced it, when there is one
- whatever the caller passed in `extra`

Fields that look like credentials (webhook secrets, signatures, API keys,
verification tokens) are masked before they are written. Token *counts*
such as `tokens_used` are left alone.

Usage:
    from autoresponder.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Draft routed", extra={"ticket_id": str(ticket.id)})
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

# Set by RequestContextMiddleware for the lifetime of a request
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

REDACTED = "***REDACTED***"
SENSITIVE_MARKERS = ("password", "api_key", "secret", "signature", "verify_token", "authorization")
COUNTER_SUFFIXES = ("_used", "_count", "tokens")

QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.ERROR,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "openai": logging.WARNING,
    "aiosmtplib": logging.WARNING,
}


def is_sensitive(key: str) -> bool:
    lowered = key.lower()
    if any(marker in lowered for marker in SENSITIVE_MARKERS):
        return True
    return "token" in lowered and not lowered.endswith(COUNTER_SUFFIXES)


def redact(fields: Dict[str, Any]) -> None:
    """Mask string values under credential-like keys, in place."""
    for key, value in fields.items():
        if isinstance(value, str) and is_sensitive(key):
            fields[key] = REDACTED


class SupportJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps environment and correlation id, then redacts."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._environment = environment

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = getattr(record, "environment", self._environment)

        correlation_id = getattr(record, "correlation_id", None) or correlation_id_var.get()
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        redact(log_record)


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """Replace the root handlers with a single JSON handler on stdout."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(SupportJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log `<operation> completed` with the elapsed milliseconds.

    The record is written even when the block raises, so slow failures
    show up too.

    Usage:
        with log_latency(logger, "draft_generation", model=model):
            completion = await llm.complete(...)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
