"""
Workflow Application DTOs
=========================

Pydantic models for the service request API.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from complianceops.workflow.domain import ActivityEntry, ServiceRequest, ServiceRequestStatus


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["urgent", "high", "medium", "low"]


# ========== Request DTOs ==========

class ServiceRequestCreate(BaseModel):
    """DTO for opening a service request."""
    id: Optional[str] = Field(None, min_length=1, max_length=64, description="Optional client-supplied ID")
    entity_id: str = Field(..., min_length=1, description="Owning business entity")
    service_key: str = Field(..., min_length=1, description="Service catalog key")
    priority: PriorityStr = Field(default="medium", description="Request priority")
    sla_deadline: Optional[datetime] = Field(None, description="Absolute SLA deadline")
    assigned_to: Optional[str] = Field(None, description="Initial assignee")
    actor_id: str = Field(..., min_length=1, description="Who creates the request")

    @field_validator("sla_deadline")
    @classmethod
    def validate_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """SLA deadlines must carry a timezone."""
        if v is not None and v.tzinfo is None:
            raise ValueError("sla_deadline must be timezone-aware")
        return v


class TransitionRequest(BaseModel):
    """DTO for a status transition."""
    requested_status: ServiceRequestStatus = Field(..., description="Target status")
    actor_id: str = Field(..., min_length=1, description="Who performs the transition")
    actor_role: Optional[str] = Field(
        None, max_length=100, description="Role of the actor; checked on role-guarded transitions"
    )
    expected_status: Optional[ServiceRequestStatus] = Field(
        None, description="Status the caller last observed (optimistic concurrency)"
    )
    note: Optional[str] = Field(None, max_length=2000)


# ========== Response DTOs ==========

class StatusHistoryResponse(BaseModel):
    from_status: Optional[str]
    to_status: str
    actor_id: str
    changed_at: datetime
    note: Optional[str] = None


class ServiceRequestResponse(BaseModel):
    """Service request with its audit trail."""
    id: str
    entity_id: str
    service_key: str
    status: str
    phase: str
    priority: str
    sla_deadline: Optional[datetime]
    assigned_to: Optional[str]
    resume_status: Optional[str]
    sla_paused: bool = False
    sla_paused_at: Optional[datetime] = None
    sla_paused_seconds: float = 0.0
    created_at: datetime
    updated_at: datetime
    status_changed_at: Optional[datetime]
    history: List[StatusHistoryResponse] = Field(default_factory=list)

    @classmethod
    def from_entity(cls, request: ServiceRequest) -> "ServiceRequestResponse":
        return cls(
            id=request.id,
            entity_id=request.entity_id,
            service_key=request.service_key,
            status=request.status.value,
            phase=request.phase.value,
            priority=request.priority.value,
            sla_deadline=request.sla_deadline,
            assigned_to=request.assigned_to,
            resume_status=request.resume_status.value if request.resume_status else None,
            sla_paused=request.sla_paused,
            sla_paused_at=request.sla_paused_at,
            sla_paused_seconds=round(request.sla_paused_seconds, 1),
            created_at=request.created_at,
            updated_at=request.updated_at,
            status_changed_at=request.status_changed_at,
            history=[
                StatusHistoryResponse(
                    from_status=entry.from_status.value if entry.from_status else None,
                    to_status=entry.to_status.value,
                    actor_id=entry.actor_id,
                    changed_at=entry.changed_at,
                    note=entry.note,
                )
                for entry in request.history
            ],
        )


class AllowedTransitionsResponse(BaseModel):
    service_request_id: str
    status: str
    allowed: List[str]
    steps_to_completion: Optional[int]


class WorkflowGraphResponse(BaseModel):
    nodes: List[dict]
    edges: List[dict]
    overlays: List[dict]


class ActivityEntryResponse(BaseModel):
    """Internal view of an activity log entry."""
    id: str
    work_item_id: str
    activity_type: str
    description: str
    occurred_at: datetime
    actor_id: Optional[str]
    trigger_source: str
    previous_value: Optional[dict]
    new_value: Optional[dict]
    client_visible: bool
    client_message: Optional[str]

    @classmethod
    def from_entity(cls, entry: ActivityEntry) -> "ActivityEntryResponse":
        return cls(
            id=entry.id,
            work_item_id=entry.work_item_id,
            activity_type=entry.activity_type.value,
            description=entry.description,
            occurred_at=entry.occurred_at,
            actor_id=entry.actor_id,
            trigger_source=entry.trigger_source,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            client_visible=entry.client_visible,
            client_message=entry.client_message,
        )


class ClientActivityResponse(BaseModel):
    """What the client sees: no actors, no internal values."""
    activity_type: str
    message: str
    occurred_at: datetime

    @classmethod
    def from_entity(cls, entry: ActivityEntry) -> "ClientActivityResponse":
        return cls(
            activity_type=entry.activity_type.value,
            message=entry.client_text,
            occurred_at=entry.occurred_at,
        )
