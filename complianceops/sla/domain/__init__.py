"""
SLA Domain Layer
================

Pure domain logic for SLA evaluation.

Contains:
- Entities: SlaBreach and its lifecycle, SlaException grants
- Value Objects: SLA bucket evaluation and breach severity
- Calendar: business hours and per-service deadline policies
"""

from complianceops.sla.domain.calendar import (
    BusinessCalendar,
    SlaDeadlineCalculator,
    SlaPolicy,
    DEFAULT_RESOLUTION_HOURS,
    PRIORITY_MULTIPLIERS,
)
from complianceops.sla.domain.entities import SlaBreach, SlaException, BREACH_TRANSITIONS
from complianceops.sla.domain.value_objects import (
    evaluate_sla,
    breach_severity,
    hours_remaining,
    OVERALL_SLA_BREACH,
)

__all__ = [
    "SlaBreach",
    "SlaException",
    "BREACH_TRANSITIONS",
    "BusinessCalendar",
    "SlaDeadlineCalculator",
    "SlaPolicy",
    "DEFAULT_RESOLUTION_HOURS",
    "PRIORITY_MULTIPLIERS",
    "evaluate_sla",
    "breach_severity",
    "hours_remaining",
    "OVERALL_SLA_BREACH",
]
