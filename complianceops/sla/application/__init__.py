"""
SLA Application Layer
======================

Application layer for SLA tracking.

Contains:
- Services: SlaBreachService (detection and breach lifecycle),
  SlaExceptionService (deadline extensions), SlaReportingService
- DTOs: Data transfer objects for API serialization and SLA policy config
"""

from complianceops.sla.application.dto import (
    BreachActionRequest,
    BusinessHoursConfig,
    SlaBreachResponse,
    SlaExceptionCreate,
    SlaExceptionResponse,
    SlaMetricsResponse,
    SlaPolicyConfig,
    SlaSummaryResponse,
    build_deadline_calculator,
)
from complianceops.sla.application.services import (
    ISlaBreachRepository,
    ISlaExceptionRepository,
    SlaBreachService,
    SlaExceptionService,
    SlaMetrics,
    SlaReportingService,
    SlaSummary,
)

__all__ = [
    # DTOs
    "BreachActionRequest",
    "BusinessHoursConfig",
    "SlaBreachResponse",
    "SlaExceptionCreate",
    "SlaExceptionResponse",
    "SlaMetricsResponse",
    "SlaPolicyConfig",
    "SlaSummaryResponse",
    "build_deadline_calculator",
    # Services
    "SlaBreachService",
    "SlaExceptionService",
    "SlaReportingService",
    "SlaMetrics",
    "SlaSummary",
    # Repository Interfaces
    "ISlaBreachRepository",
    "ISlaExceptionRepository",
]
