"""
Structured Logging
==================

JSON log records for the SLA engine.

Every record carries a timestamp and the environment name; records
emitted during a poll tick also carry the tick's correlation id, so all
lines of one evaluation pass can be grouped by a log aggregator.

Usage:
    from sla_alerts.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Alert dispatched", extra={"alert_id": "sla-T-1-warning"})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from pythonjsonlogger import jsonlogger


_SENSITIVE_KEYS = ("password", "api_key", "webhook_url", "secret", "token")
_REDACTED = "***REDACTED***"

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = ("apscheduler", "watchdog", "httpx", "httpcore")

_HANDLER_MARK = "_sla_alerts_handler"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter stamping engine context on each record.

    Adds ``timestamp`` (ISO 8601, UTC), ``environment`` and, when
    present, ``correlation_id``. String values under secret-looking keys
    are redacted.
    """

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        self.environment = environment
        super().__init__(*args, **kwargs)

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        log_record["environment"] = getattr(record, "environment", self.environment)

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key, value in log_record.items():
            if isinstance(value, str) and any(s in key.lower() for s in _SENSITIVE_KEYS):
                log_record[key] = _REDACTED


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """
    Route root logging through one JSON handler.

    Calling it again swaps the handler it installed before; handlers
    added by the host application are left in place.

    Args:
        level: Level name, case-insensitive (usually ``Settings.log_level``)
        environment: Environment name stamped on every record
        stream: Output stream, stdout by default

    Returns:
        The installed handler
    """
    numeric_level = getattr(logging, level.upper())
    root_logger = logging.getLogger()

    for existing in [h for h in root_logger.handlers if getattr(h, _HANDLER_MARK, False)]:
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    setattr(handler, _HANDLER_MARK, True)
    handler.setFormatter(CustomJsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        environment=environment,
    ))

    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its context into per-call ``extra``."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_context_logger(name: str, correlation_id: str | None = None) -> logging.Logger:
    """
    Logger that tags every record with ``correlation_id``.

    Without a correlation id this is just ``get_logger(name)``.
    """
    logger = get_logger(name)
    if correlation_id:
        logger = ContextLoggerAdapter(logger, {"correlation_id": correlation_id})
    return logger


@contextmanager
def log_latency(
    logger: logging.Logger,
    operation: str,
    level: int = logging.INFO,
    **extra_context: Any,
):
    """
    Log how long the ``with`` block took, even if it raised.

    Usage:
        with log_latency(logger, "sla_tick", level=logging.DEBUG):
            poller.tick()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.log(
            level,
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round(elapsed_ms, 2),
                **extra_context,
            },
        )
