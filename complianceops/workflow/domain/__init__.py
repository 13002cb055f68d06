"""
Workflow Domain Layer
=====================

Pure domain logic for the service request lifecycle.

Contains:
- Entities: ServiceRequest, StatusHistoryEntry, StatusChangedEvent, ActivityEntry
- Value Objects: status enumeration, phases, adjacency table
- State machine: transition validation and derived graph views
"""

from complianceops.workflow.domain.value_objects import (
    ServiceRequestStatus,
    Phase,
    PHASES,
    PHASE_OF,
    TRANSITIONS,
    TERMINAL_STATUSES,
    OVERLAY_STATUSES,
    ROLE_GUARDS,
    may_approve_qc,
)
from complianceops.workflow.domain.entities import (
    ActivityEntry,
    ServiceRequest,
    StatusHistoryEntry,
    StatusChangedEvent,
)
from complianceops.workflow.domain.state_machine import ServiceRequestStateMachine

__all__ = [
    # Value Objects
    "ServiceRequestStatus",
    "Phase",
    "PHASES",
    "PHASE_OF",
    "TRANSITIONS",
    "TERMINAL_STATUSES",
    "OVERLAY_STATUSES",
    "ROLE_GUARDS",
    "may_approve_qc",
    # Entities
    "ActivityEntry",
    "ServiceRequest",
    "StatusHistoryEntry",
    "StatusChangedEvent",
    # State machine
    "ServiceRequestStateMachine",
]
