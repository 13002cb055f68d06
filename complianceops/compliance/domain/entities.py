"""
Compliance Domain Entities
==========================

Obligations tracked per business entity and the derived health snapshot.

ComplianceState is a cache: it can always be rebuilt from the obligations
of its entity and is never the source of truth.
"""

from dataclasses import dataclass, fields
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from complianceops.config import (
    Priority, ObligationStatus, ComplianceGrade, DeadlineRisk,
    ComplianceAlertSeverity, ComplianceAlertType,
)


@dataclass
class ComplianceObligation:
    """
    A single regulatory requirement for a business entity.

    Created when the entity subscribes to a compliance category, mutated on
    evidence submission or due-date extension, archived (never deleted) once
    completed.
    """

    id: str
    entity_id: str
    title: str
    category: str
    due_date: date
    created_at: datetime
    updated_at: datetime
    status: ObligationStatus = ObligationStatus.PENDING
    priority: Priority = Priority.MEDIUM
    penalty_risk: Decimal = Decimal("0")
    evidence_ref: Optional[str] = None
    evidence_submitted_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    def __post_init__(self):
        if self.penalty_risk < 0:
            raise ValueError("penalty_risk cannot be negative")

    @property
    def is_completed(self) -> bool:
        return self.status == ObligationStatus.COMPLETED

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def submit_evidence(self, evidence_ref: str, at: datetime) -> None:
        """Attach evidence and move a pending obligation into progress."""
        if self.is_archived:
            raise ValueError("archived obligations cannot change")
        self.evidence_ref = evidence_ref
        self.evidence_submitted_at = at
        if self.status == ObligationStatus.PENDING:
            self.status = ObligationStatus.IN_PROGRESS
        self.updated_at = at

    def extend_due_date(self, new_due_date: date, at: datetime) -> None:
        if self.is_archived:
            raise ValueError("archived obligations cannot change")
        if new_due_date < self.due_date:
            raise ValueError("due date can only be extended, not brought forward")
        self.due_date = new_due_date
        self.updated_at = at

    def complete(self, at: datetime) -> None:
        """Mark completed and archive for historical trend queries."""
        if self.is_archived:
            return
        self.status = ObligationStatus.COMPLETED
        self.archived_at = at
        self.updated_at = at


@dataclass(frozen=True)
class NextDeadline:
    """Pointer to the nearest unresolved obligation of an entity."""
    obligation_id: str
    title: str
    due_date: date
    priority: Priority
    risk: Optional[DeadlineRisk] = None


@dataclass(frozen=True)
class ComplianceState:
    """Derived per-entity compliance snapshot."""
    entity_id: str
    grade: ComplianceGrade
    health_score: int
    risk_score: int
    penalty_exposure: Decimal
    overdue_count: int
    upcoming_count: int
    total_count: int
    completed_count: int
    next_deadline: Optional[NextDeadline]
    calculated_at: datetime

    def same_as(self, other: Optional["ComplianceState"]) -> bool:
        """Compare every field except the evaluation instant."""
        if other is None:
            return False
        return all(
            getattr(self, f.name) == getattr(other, f.name)
            for f in fields(self)
            if f.name != "calculated_at"
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        next_deadline = None
        if self.next_deadline is not None:
            next_deadline = {
                "obligation_id": self.next_deadline.obligation_id,
                "title": self.next_deadline.title,
                "due_date": self.next_deadline.due_date.isoformat(),
                "priority": self.next_deadline.priority.value,
                "risk": self.next_deadline.risk.value if self.next_deadline.risk else None,
            }
        return {
            "entity_id": self.entity_id,
            "grade": self.grade.value,
            "health_score": self.health_score,
            "risk_score": self.risk_score,
            "penalty_exposure": str(self.penalty_exposure),
            "overdue_count": self.overdue_count,
            "upcoming_count": self.upcoming_count,
            "total_count": self.total_count,
            "completed_count": self.completed_count,
            "next_deadline": next_deadline,
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass
class ComplianceAlert:
    """
    Alert raised for one obligation during recalculation.

    At most one alert per obligation is active at a time. An alert is never
    deleted: it is resolved once its condition clears or is superseded.
    """
    id: str
    entity_id: str
    obligation_id: str
    alert_type: ComplianceAlertType
    severity: ComplianceAlertSeverity
    title: str
    message: str
    triggered_at: datetime
    due_date: Optional[date] = None
    is_active: bool = True
    resolved_at: Optional[datetime] = None

    def resolve(self, at: datetime) -> None:
        self.is_active = False
        self.resolved_at = at
