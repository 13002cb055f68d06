"""
SLA Application DTOs
=====================

Data Transfer Objects for the SLA API and the SLA policy configuration.
"""

from datetime import datetime, tzinfo
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from complianceops.sla.application.services import SlaMetrics, SlaSummary
from complianceops.sla.domain import (
    DEFAULT_RESOLUTION_HOURS,
    BusinessCalendar,
    SlaBreach,
    SlaDeadlineCalculator,
    SlaException,
    SlaPolicy,
)


# ========== Type Aliases for Literals ==========
BreachStatusStr = Literal["open", "acknowledged", "investigating", "resolved"]
BreachSeverityStr = Literal["minor", "major", "critical"]


# ========== Request DTOs ==========

class BreachActionRequest(BaseModel):
    """Body for acknowledge / investigate / resolve."""
    notes: Optional[str] = Field(None, max_length=4000)


class SlaExceptionCreate(BaseModel):
    """Body for granting a deadline extension."""
    extension_hours: float = Field(..., gt=0, le=24 * 90)
    reason: str = Field(..., min_length=1, max_length=2000)
    granted_by: str = Field(..., min_length=1, max_length=64)


# ========== Configuration DTOs ==========

class SlaPolicyConfig(BaseModel):
    """Resolution window of one service, before the priority multiplier."""
    resolution_hours: float = Field(DEFAULT_RESOLUTION_HOURS, gt=0)
    business_hours: bool = True

    def to_domain(self) -> SlaPolicy:
        return SlaPolicy(resolution_hours=self.resolution_hours, business_hours=self.business_hours)


class BusinessHoursConfig(BaseModel):
    start_hour: int = Field(9, ge=0, le=23)
    end_hour: int = Field(18, ge=1, le=23)
    work_days: List[int] = Field(default_factory=lambda: [0, 1, 2, 3, 4], min_length=1)

    @field_validator("work_days")
    @classmethod
    def validate_work_days(cls, v: List[int]) -> List[int]:
        if any(day not in range(7) for day in v):
            raise ValueError("work_days are weekday numbers, Monday = 0 .. Sunday = 6")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_window(self) -> "BusinessHoursConfig":
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self

    def to_calendar(self, tz: tzinfo) -> BusinessCalendar:
        return BusinessCalendar(
            tz=tz,
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            work_days=frozenset(self.work_days),
        )


def build_deadline_calculator(
    policies: Dict[str, SlaPolicyConfig],
    default: Optional[SlaPolicyConfig],
    hours: BusinessHoursConfig,
    tz: tzinfo,
) -> SlaDeadlineCalculator:
    return SlaDeadlineCalculator(
        policies={key: policy.to_domain() for key, policy in policies.items()},
        calendar=hours.to_calendar(tz),
        default=default.to_domain() if default else None,
    )


# ========== Response DTOs ==========

class SlaBreachResponse(BaseModel):
    id: str
    work_item_id: str
    entity_id: str
    deadline: datetime
    detected_at: datetime
    hours_over: float
    severity: BreachSeverityStr
    breach_type: str
    status: BreachStatusStr
    acknowledged_at: Optional[datetime]
    resolved_at: Optional[datetime]
    notes: Optional[str]

    @classmethod
    def from_entity(cls, breach: SlaBreach) -> "SlaBreachResponse":
        return cls(
            id=breach.id,
            work_item_id=breach.work_item_id,
            entity_id=breach.entity_id,
            deadline=breach.deadline,
            detected_at=breach.detected_at,
            hours_over=breach.hours_over,
            severity=breach.severity.value,
            breach_type=breach.breach_type,
            status=breach.status.value,
            acknowledged_at=breach.acknowledged_at,
            resolved_at=breach.resolved_at,
            notes=breach.notes,
        )


class SlaExceptionResponse(BaseModel):
    id: str
    work_item_id: str
    entity_id: str
    previous_deadline: datetime
    new_deadline: datetime
    extension_hours: float
    reason: str
    granted_by: str
    granted_at: datetime

    @classmethod
    def from_entity(cls, exception: SlaException) -> "SlaExceptionResponse":
        return cls(
            id=exception.id,
            work_item_id=exception.work_item_id,
            entity_id=exception.entity_id,
            previous_deadline=exception.previous_deadline,
            new_deadline=exception.new_deadline,
            extension_hours=exception.extension_hours,
            reason=exception.reason,
            granted_by=exception.granted_by,
            granted_at=exception.granted_at,
        )


class SlaSummaryResponse(BaseModel):
    evaluated_at: datetime
    total: int
    buckets: Dict[str, int]

    @classmethod
    def from_summary(cls, summary: SlaSummary) -> "SlaSummaryResponse":
        return cls(evaluated_at=summary.evaluated_at, total=summary.total, buckets=summary.buckets)


class ServiceComplianceResponse(BaseModel):
    total: int
    breached: int
    compliance_rate: float


class SlaMetricsResponse(BaseModel):
    period_start: datetime
    period_end: datetime
    total: int
    on_time: int
    breached: int
    compliance_percentage: float
    average_completion_hours: Optional[float]
    average_business_hours: Optional[float]
    by_service: Dict[str, ServiceComplianceResponse]
    breach_types: Dict[str, int]

    @classmethod
    def from_metrics(cls, metrics: SlaMetrics) -> "SlaMetricsResponse":
        return cls(
            period_start=metrics.since,
            period_end=metrics.until,
            total=metrics.total,
            on_time=metrics.on_time,
            breached=metrics.breached,
            compliance_percentage=metrics.compliance_percentage,
            average_completion_hours=metrics.average_completion_hours,
            average_business_hours=metrics.average_business_hours,
            by_service={
                key: ServiceComplianceResponse(
                    total=stats.total,
                    breached=stats.breached,
                    compliance_rate=stats.compliance_rate,
                )
                for key, stats in metrics.by_service.items()
            },
            breach_types=metrics.breach_types,
        )
