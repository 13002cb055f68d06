"""
Workflow Application Layer
==========================

Application layer for the service request lifecycle.

Contains:
- Services: ServiceRequestService (create, read, transition)
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from complianceops.workflow.application.dto import (
    ServiceRequestCreate,
    TransitionRequest,
    StatusHistoryResponse,
    ServiceRequestResponse,
    AllowedTransitionsResponse,
    WorkflowGraphResponse,
    ActivityEntryResponse,
    ClientActivityResponse,
)
from complianceops.workflow.application.services import (
    DeadlinePolicy,
    IActivityLogRepository,
    IServiceRequestRepository,
    ServiceRequestService,
    StatusChangeListener,
)

__all__ = [
    # DTOs
    "ServiceRequestCreate",
    "TransitionRequest",
    "StatusHistoryResponse",
    "ServiceRequestResponse",
    "AllowedTransitionsResponse",
    "WorkflowGraphResponse",
    "ActivityEntryResponse",
    "ClientActivityResponse",
    # Services
    "ServiceRequestService",
    "StatusChangeListener",
    "DeadlinePolicy",
    # Repository Interfaces
    "IServiceRequestRepository",
    "IActivityLogRepository",
]
