"""
SLA Infrastructure Models
==========================

SQLAlchemy ORM models for SLA breaches and exception grants.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Float, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from complianceops.infrastructure.database import Base, UTCDateTime


class SlaBreachModel(Base):
    """
    Database model for SlaBreach entity.

    Maps to the 'sla_breaches' table. One row per (work item, deadline).
    """
    __tablename__ = "sla_breaches"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Work item reference
    work_item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Breach details
    detected_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    hours_over: Mapped[float] = mapped_column(Float, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    breach_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("work_item_id", "deadline", name="uq_sla_breach_item_deadline"),
    )


class SlaExceptionModel(Base):
    """Database model for SlaException grants. Rows are never updated."""
    __tablename__ = "sla_exceptions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    work_item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)

    previous_deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    new_deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    extension_hours: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    granted_by: Mapped[str] = mapped_column(String(64), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
