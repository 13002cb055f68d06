"""
Shared API
==========

Middleware, exception handlers and dependencies shared by every router.
"""

from complianceops.shared.api.middleware import (
    RequestContextMiddleware,
    application_exception_handler,
    status_code_for,
    unhandled_exception_handler,
)

__all__ = [
    "RequestContextMiddleware",
    "application_exception_handler",
    "status_code_for",
    "unhandled_exception_handler",
]
