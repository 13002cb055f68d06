"""
Compliance Application DTOs
===========================

Pydantic models for the compliance API.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from complianceops.compliance.domain import ComplianceAlert, ComplianceObligation, ComplianceState


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["urgent", "high", "medium", "low"]
ObligationStatusStr = Literal["pending", "in_progress", "completed"]


# ========== Request DTOs ==========

class ObligationCreate(BaseModel):
    """DTO for tracking a new obligation."""
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    entity_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    category: str = Field(..., min_length=1, max_length=100)
    due_date: date
    priority: PriorityStr = "medium"
    penalty_risk: Decimal = Field(default=Decimal("0"), ge=0, description="Estimated penalty if missed")


class ObligationUpdate(BaseModel):
    """DTO for evidence submission, due-date extension or completion."""
    evidence_ref: Optional[str] = Field(None, min_length=1)
    due_date: Optional[date] = None
    status: Optional[ObligationStatusStr] = None
    penalty_risk: Optional[Decimal] = Field(None, ge=0)
    priority: Optional[PriorityStr] = None


# ========== Response DTOs ==========

class ObligationResponse(BaseModel):
    id: str
    entity_id: str
    title: str
    category: str
    due_date: date
    status: str
    priority: str
    penalty_risk: Decimal
    evidence_ref: Optional[str]
    archived_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, obligation: ComplianceObligation) -> "ObligationResponse":
        return cls(
            id=obligation.id,
            entity_id=obligation.entity_id,
            title=obligation.title,
            category=obligation.category,
            due_date=obligation.due_date,
            status=obligation.status.value,
            priority=obligation.priority.value,
            penalty_risk=obligation.penalty_risk,
            evidence_ref=obligation.evidence_ref,
            archived_at=obligation.archived_at,
            created_at=obligation.created_at,
            updated_at=obligation.updated_at,
        )


class NextDeadlineResponse(BaseModel):
    obligation_id: str
    title: str
    due_date: date
    priority: str
    risk: Optional[str]


class ComplianceStateResponse(BaseModel):
    """Compliance state query result."""
    entity_id: str
    grade: str
    health_score: int
    risk_score: int
    penalty_exposure: Decimal
    overdue_count: int
    upcoming_count: int
    total_count: int
    completed_count: int
    next_deadline: Optional[NextDeadlineResponse]
    calculated_at: datetime

    @classmethod
    def from_state(cls, state: ComplianceState) -> "ComplianceStateResponse":
        next_deadline = None
        if state.next_deadline is not None:
            next_deadline = NextDeadlineResponse(
                obligation_id=state.next_deadline.obligation_id,
                title=state.next_deadline.title,
                due_date=state.next_deadline.due_date,
                priority=state.next_deadline.priority.value,
                risk=state.next_deadline.risk.value if state.next_deadline.risk else None,
            )
        return cls(
            entity_id=state.entity_id,
            grade=state.grade.value,
            health_score=state.health_score,
            risk_score=state.risk_score,
            penalty_exposure=state.penalty_exposure,
            overdue_count=state.overdue_count,
            upcoming_count=state.upcoming_count,
            total_count=state.total_count,
            completed_count=state.completed_count,
            next_deadline=next_deadline,
            calculated_at=state.calculated_at,
        )


class RecalculationResponse(BaseModel):
    state: ComplianceStateResponse
    changed: bool


class ComplianceHistoryResponse(BaseModel):
    entity_id: str
    snapshots: List[ComplianceStateResponse]


class ComplianceAlertResponse(BaseModel):
    id: str
    entity_id: str
    obligation_id: str
    alert_type: Literal["overdue", "upcoming"]
    severity: Literal["warning", "critical"]
    title: str
    message: str
    due_date: Optional[date]
    triggered_at: datetime
    is_active: bool
    resolved_at: Optional[datetime]

    @classmethod
    def from_entity(cls, alert: ComplianceAlert) -> "ComplianceAlertResponse":
        return cls(
            id=alert.id,
            entity_id=alert.entity_id,
            obligation_id=alert.obligation_id,
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
            title=alert.title,
            message=alert.message,
            due_date=alert.due_date,
            triggered_at=alert.triggered_at,
            is_active=alert.is_active,
            resolved_at=alert.resolved_at,
        )
