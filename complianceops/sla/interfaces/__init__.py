"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for SLA breach tracking.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from complianceops.sla.interfaces.controllers import sla_router

__all__ = ["sla_router"]
