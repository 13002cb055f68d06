"""
Shared API Middleware
======================

Request context middleware and the exception handlers that turn
application errors into JSON responses.

Error body (every status):
    {"error": "<ExceptionName>", "detail": "...", "details": {...}, "correlation_id": "..."}
"""

import time
import uuid
from typing import Any, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from complianceops.config import settings
from complianceops.core import (
    ApplicationException,
    DomainException,
    ResourceNotFoundException,
    TransitionNotPermitted,
    ValidationException,
)
from complianceops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", "unknown")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with a correlation ID and logs it with timing.

    An incoming ``X-Correlation-ID`` is reused so operator tools can follow a
    transition from their own logs into ours.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        log_context = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
        }
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**log_context, "error_type": type(e).__name__, "elapsed_ms": _elapsed_ms(start)}
            )
            raise

        elapsed = time.perf_counter() - start
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[RESPONSE_TIME_HEADER] = f"{elapsed:.3f}s"
        logger.info(
            "Request completed",
            extra={**log_context, "status_code": response.status_code, "elapsed_ms": int(elapsed * 1000)}
        )
        return response


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def status_code_for(exc: ApplicationException) -> int:
    """HTTP status for an application exception."""
    if isinstance(exc, ResourceNotFoundException):
        return 404
    if isinstance(exc, ValidationException):
        return 422
    if isinstance(exc, TransitionNotPermitted):
        return 403
    if isinstance(exc, DomainException):
        return 409
    return 500


def error_body(request: Request, error: str, detail: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "error": error,
        "detail": detail,
        "details": details or {},
        "correlation_id": _correlation_id(request),
    }


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Translate application exceptions into JSON error responses."""
    status_code = status_code_for(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request rejected",
        extra={
            "correlation_id": _correlation_id(request),
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "status_code": status_code,
        }
    )

    # Server-side failures keep their internals out of production responses
    if status_code >= 500 and settings.environment != "development":
        body = error_body(request, type(exc).__name__, "Internal server error")
    else:
        body = error_body(request, type(exc).__name__, exc.message, exc.details)
    return JSONResponse(status_code=status_code, content=body)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure and answer 500."""
    logger.error(
        "Unhandled exception",
        extra={
            "correlation_id": _correlation_id(request),
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error": str(exc),
        },
        exc_info=exc,
    )
    details = {"debug_info": str(exc)} if settings.environment == "development" else {}
    return JSONResponse(
        status_code=500,
        content=error_body(request, "InternalServerError", "Internal server error", details),
    )
