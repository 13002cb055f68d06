"""
Compliance Infrastructure Models
================================

SQLAlchemy ORM models for obligations, the cached compliance state, its
history and obligation alerts.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from complianceops.infrastructure.database import Base, UTCDateTime


class ObligationModel(Base):
    """
    Database model for ComplianceObligation entity.

    Maps to the 'compliance_obligations' table. Rows are archived, never deleted.
    """
    __tablename__ = "compliance_obligations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    penalty_risk: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    # Evidence
    evidence_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_submitted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Timestamps
    archived_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class ComplianceStateColumns:
    """Columns shared by the cached state and its history snapshots."""

    grade: Mapped[str] = mapped_column(String(10), nullable=False)
    health_score: Mapped[int] = mapped_column(Integer, nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    penalty_exposure: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    overdue_count: Mapped[int] = mapped_column(Integer, nullable=False)
    upcoming_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Nearest unresolved obligation
    next_obligation_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    next_title: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    next_due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    next_priority: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    next_risk: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    calculated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class ComplianceStateModel(ComplianceStateColumns, Base):
    """
    Cached per-entity compliance state.

    Maps to the 'compliance_states' table; one row per entity.
    """
    __tablename__ = "compliance_states"

    entity_id: Mapped[str] = mapped_column(String(64), primary_key=True)


class ComplianceStateHistoryModel(ComplianceStateColumns, Base):
    """
    Append-only compliance state snapshots.

    Maps to the 'compliance_state_history' table.
    """
    __tablename__ = "compliance_state_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)


class ComplianceAlertModel(Base):
    """
    Database model for ComplianceAlert.

    ``active_obligation_id`` holds the obligation ID while the alert is
    active and NULL once resolved; its unique index allows one active alert
    per obligation.
    """
    __tablename__ = "compliance_alerts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    obligation_id: Mapped[str] = mapped_column(String(64), nullable=False)
    active_obligation_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True)

    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    triggered_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
