"""
Compliance Application Layer
============================

Contains:
- Services: ComplianceService (obligations, state, recalculation, alerts)
- DTOs: Data transfer objects for API serialization
"""

from complianceops.compliance.application.dto import (
    ObligationCreate,
    ObligationUpdate,
    ObligationResponse,
    NextDeadlineResponse,
    ComplianceStateResponse,
    RecalculationResponse,
    ComplianceHistoryResponse,
    ComplianceAlertResponse,
)
from complianceops.compliance.application.services import (
    IObligationRepository,
    IComplianceStateRepository,
    IComplianceAlertRepository,
    ComplianceService,
)

__all__ = [
    # DTOs
    "ObligationCreate",
    "ObligationUpdate",
    "ObligationResponse",
    "NextDeadlineResponse",
    "ComplianceStateResponse",
    "RecalculationResponse",
    "ComplianceHistoryResponse",
    "ComplianceAlertResponse",
    # Services
    "ComplianceService",
    # Repository Interfaces
    "IObligationRepository",
    "IComplianceStateRepository",
    "IComplianceAlertRepository",
]
