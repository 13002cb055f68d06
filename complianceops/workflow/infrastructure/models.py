"""
Workflow Infrastructure Models
==============================

SQLAlchemy ORM models for service requests and their status history.

These are the database representations of our domain entities.
They belong in the infrastructure layer, not the domain layer.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from complianceops.infrastructure.database import Base, UTCDateTime


class ServiceRequestModel(Base):
    """
    Database model for ServiceRequest entity.

    Maps to the 'service_requests' table.
    """
    __tablename__ = "service_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    service_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resume_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    assigned_to: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    # SLA
    sla_deadline: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    sla_paused_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    sla_paused_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status_changed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class StatusHistoryModel(Base):
    """
    Append-only status audit trail.

    Maps to the 'service_request_status_history' table. Rows are never updated.
    """
    __tablename__ = "service_request_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    service_request_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("service_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class ActivityLogModel(Base):
    """
    Append-only work item activity log.

    Maps to the 'work_item_activity_log' table. Rows are never updated.
    """
    __tablename__ = "work_item_activity_log"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    work_item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    trigger_source: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    new_value: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    client_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    client_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
