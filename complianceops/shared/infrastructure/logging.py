"""
Structured Logging
==================

JSON log lines for the API and the recalculation scheduler.

Every record carries ``timestamp``, ``service`` and ``environment``; request
scoped records also carry the ``correlation_id`` set by the API middleware.

Usage:
    from complianceops.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Compliance state recalculated", extra={"entity_id": "ENT-001"})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from pythonjsonlogger import jsonlogger

REDACTED = "***REDACTED***"
_SECRET_MARKERS = ("password", "secret", "token", "api_key")


def _mask_url(value: str) -> str:
    """Drop credentials and query strings from webhook-style URLs."""
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        return value
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    query = REDACTED if parts.query else ""
    return urlunsplit((parts.scheme, host, parts.path, query, ""))


class ComplianceOpsJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping service metadata and masking secrets."""

    def __init__(self, *args: Any, service: str = "compliance-ops", environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._service = service
        self._environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault("timestamp", datetime.fromtimestamp(record.created, timezone.utc).isoformat())
        log_record["service"] = self._service
        log_record["environment"] = self._environment

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for key, value in list(log_record.items()):
            if not isinstance(value, str):
                continue
            lowered = key.lower()
            if any(marker in lowered for marker in _SECRET_MARKERS):
                log_record[key] = REDACTED
            elif lowered.endswith("url"):
                log_record[key] = _mask_url(value)


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
    service: str = "compliance-ops",
) -> None:
    """
    Route the root logger to stdout as JSON.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        environment: Deployment environment stamped on every record
        service: Service name stamped on every record
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ComplianceOpsJsonFormatter(
        fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        service=service,
        environment=environment,
    ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    # Library loggers stay quiet unless debugging
    quiet_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in ("uvicorn.access", "sqlalchemy.engine", "apscheduler", "httpx", "watchdog"):
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Log how long the wrapped block took, in milliseconds.

    Usage:
        with log_latency(logger, "recalculation_pass", trigger="timer"):
            await scheduler.run_once()
    """
    start = time.perf_counter()
    failed = False
    try:
        yield
    except Exception:
        failed = True
        raise
    finally:
        logger.info(
            f"{operation} {'failed' if failed else 'completed'}",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                "failed": failed,
                **extra_context,
            },
        )
