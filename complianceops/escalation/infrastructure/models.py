"""
Escalation Infrastructure Models
================================

SQLAlchemy ORM models for escalation rules and executions.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from complianceops.infrastructure.database import Base, UTCDateTime


class EscalationRuleModel(Base):
    """
    Database model for EscalationRule.

    Trigger and tiers are stored as JSON documents in their serialized form.
    """
    __tablename__ = "escalation_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    rule_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Configuration
    trigger: Mapped[dict] = mapped_column(JSON, nullable=False)
    tiers: Mapped[List[dict]] = mapped_column(JSON, nullable=False)

    # Scope
    service_key: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status_filter: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    priority_filter: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Actions
    auto_reassign: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reassign_to_role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notify_client: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    create_incident: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)


class EscalationExecutionModel(Base):
    """
    Database model for EscalationExecution.

    The (rule, work item, tier) unique constraint is what makes tier firing
    at-most-once across overlapping evaluations.
    """
    __tablename__ = "escalation_executions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    rule_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("escalation_rules.id"), nullable=False
    )
    work_item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    progress_percent: Mapped[float] = mapped_column(Float, nullable=False)
    fired_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    actions: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    notified_roles: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Reassignment audit
    previous_assignee: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reassign_role: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    new_assignee: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("rule_id", "work_item_id", "tier", name="uq_escalation_rule_item_tier"),
    )
