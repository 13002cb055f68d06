"""
Workflow Domain Entities
========================

Pure Python domain entities for service request tracking.

A service request's status is only ever changed by the state machine; the
history tuple is append-only.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from complianceops.config import ActivityType, Priority
from complianceops.workflow.domain.value_objects import (
    ServiceRequestStatus,
    TERMINAL_STATUSES,
    PHASE_OF,
    Phase,
)


@dataclass(frozen=True)
class StatusHistoryEntry:
    """Immutable audit record of one status change."""
    from_status: Optional[ServiceRequestStatus]
    to_status: ServiceRequestStatus
    actor_id: str
    changed_at: datetime
    note: Optional[str] = None


@dataclass(frozen=True)
class StatusChangedEvent:
    """Published after a transition has been persisted."""
    service_request_id: str
    entity_id: str
    from_status: ServiceRequestStatus
    to_status: ServiceRequestStatus
    actor_id: str
    occurred_at: datetime


@dataclass(frozen=True)
class ActivityEntry:
    """
    One line of a work item's activity log.

    Entries are append-only. ``client_visible`` entries make up the feed
    shown to the client, using ``client_message`` when it is set.
    """
    work_item_id: str
    activity_type: ActivityType
    description: str
    occurred_at: datetime
    actor_id: Optional[str] = None
    trigger_source: str = "system"
    previous_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    client_visible: bool = False
    client_message: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def client_text(self) -> str:
        return self.client_message or self.description


@dataclass
class ServiceRequest:
    """
    Service request (work item) entity.

    Carries its SLA deadline and the status it held before entering an
    overlay status (escalated / sla_breached), so the overlay can be resolved.

    The SLA clock stops while the request is on hold: ``sla_paused_at``
    marks the start of the current pause and ``sla_paused_seconds`` adds up
    the finished ones. Resuming moves the deadline out by the pause.
    """

    id: str
    entity_id: str
    service_key: str
    priority: Priority
    created_at: datetime
    updated_at: datetime
    status: ServiceRequestStatus = ServiceRequestStatus.DRAFT
    status_changed_at: Optional[datetime] = None
    sla_deadline: Optional[datetime] = None
    assigned_to: Optional[str] = None
    resume_status: Optional[ServiceRequestStatus] = None
    sla_paused_at: Optional[datetime] = None
    sla_paused_seconds: float = 0.0
    history: Tuple[StatusHistoryEntry, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Validate request on initialization."""
        if self.updated_at < self.created_at:
            raise ValueError("updated_at cannot be before created_at")
        if self.status_changed_at is None:
            self.status_changed_at = self.created_at

    @property
    def is_terminal(self) -> bool:
        """Check if the request can no longer move."""
        return self.status in TERMINAL_STATUSES

    @property
    def phase(self) -> Phase:
        return PHASE_OF[self.status]

    @property
    def sla_paused(self) -> bool:
        return self.sla_paused_at is not None

    def pause_sla(self, at: datetime) -> None:
        if self.sla_paused_at is None:
            self.sla_paused_at = at

    def resume_sla(self, at: datetime) -> float:
        """
        Restart the SLA clock.

        Returns:
            Seconds the clock was stopped, 0 when it was running
        """
        if self.sla_paused_at is None:
            return 0.0
        paused = max(0.0, (at - self.sla_paused_at).total_seconds())
        self.sla_paused_seconds += paused
        if self.sla_deadline is not None:
            self.sla_deadline = self.sla_deadline + timedelta(seconds=paused)
        self.sla_paused_at = None
        return paused

    def copy(self, **changes) -> "ServiceRequest":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
