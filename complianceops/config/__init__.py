"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Shared enumerations used across bounded contexts live here as well, so that
domain, persistence and API layers agree on a single set of values.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="compliance-ops", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/compliance_ops",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Ops Configuration ==========
    ops_config_path: Path = Field(
        default=Path("ops_config.yaml"),
        description="Path to YAML file with assignment roster and default escalation rules"
    )
    recalculation_interval_seconds: int = Field(
        default=300,
        description="Seconds between scheduled recalculation passes (0 disables the timer)",
        ge=0
    )
    evaluation_timezone: str = Field(
        default="UTC",
        description="IANA time zone used for calendar-day deadline arithmetic"
    )
    auto_flag_sla_breach: bool = Field(
        default=True,
        description="Move breached work items into the sla_breached overlay status"
    )
    system_actor_id: str = Field(
        default="system",
        description="Actor recorded on status changes made by the scheduler"
    )
    require_actor_role: bool = Field(
        default=False,
        description="Reject role-guarded transitions that arrive without an actor role"
    )

    # ========== Notifications ==========
    notification_webhook_url: str | None = Field(
        default=None,
        description="Webhook receiving escalation notifications and incidents"
    )
    notification_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for notification webhook calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("evaluation_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject time zone names the interpreter cannot resolve."""
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone: {v}") from e
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class Priority(str, Enum):
    """Priority shared by work items and compliance obligations."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, most urgent first."""
        return PRIORITY_RANK[self]


class ObligationStatus(str, Enum):
    """Completion status of a compliance obligation."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ComplianceGrade(str, Enum):
    """Overall compliance health grade."""
    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"


class DeadlineRisk(str, Enum):
    """Risk bucket for a single obligation deadline."""
    OVERDUE = "overdue"
    DANGER = "danger"
    WARNING = "warning"
    SAFE = "safe"


class SLAStatus(str, Enum):
    """SLA bucket of a work item."""
    NO_SLA = "no_sla"
    COMPLETED = "completed"
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    CRITICAL = "critical"
    BREACHED = "breached"
    PAUSED = "paused"


class BreachSeverity(str, Enum):
    """Severity of a recorded SLA breach."""
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


class BreachStatus(str, Enum):
    """Lifecycle of an SLA breach record, independent of the work item."""
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"


class EscalationSeverity(str, Enum):
    """Severity attached to an escalation tier."""
    WARNING = "warning"
    CRITICAL = "critical"
    BREACH = "breach"


class EscalationAction(str, Enum):
    """Side effects a tier may request when it fires."""
    NOTIFY = "notify"
    REASSIGN = "reassign"
    NOTIFY_CLIENT = "notify_client"
    OPEN_INCIDENT = "open_incident"


class ComplianceAlertType(str, Enum):
    """Why a compliance alert was raised for an obligation."""
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


class ComplianceAlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


class ActivityType(str, Enum):
    """Kinds of entries in a work item's activity log."""
    ESCALATION = "escalation"
    REASSIGNMENT = "reassignment"
    CLIENT_NOTIFICATION = "client_notification"
    SLA_BREACH = "sla_breach"
    SLA_EXCEPTION = "sla_exception"


# ========== Lookups ==========

PRIORITY_RANK = {
    Priority.URGENT: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}

SLA_STATUS_RANK = {
    SLAStatus.BREACHED: 0,
    SLAStatus.CRITICAL: 1,
    SLAStatus.AT_RISK: 2,
    SLAStatus.ON_TRACK: 3,
    SLAStatus.PAUSED: 4,
    SLAStatus.NO_SLA: 5,
}
