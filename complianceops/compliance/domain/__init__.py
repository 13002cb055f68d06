"""
Compliance Domain Layer
=======================

Pure domain logic for compliance health tracking.

Contains:
- Entities: ComplianceObligation, ComplianceState, NextDeadline, ComplianceAlert
- Risk: deadline classification and the health scorer
- Alerts: which obligation alerts a recalculation raises or resolves
"""

from complianceops.compliance.domain.entities import (
    ComplianceAlert,
    ComplianceObligation,
    ComplianceState,
    NextDeadline,
)
from complianceops.compliance.domain.risk import (
    classify_deadline,
    grade_for,
    ComplianceRiskScorer,
)
from complianceops.compliance.domain.alerts import (
    AlertPlan,
    alert_condition,
    plan_alerts,
)

__all__ = [
    "ComplianceAlert",
    "ComplianceObligation",
    "ComplianceState",
    "NextDeadline",
    "classify_deadline",
    "grade_for",
    "ComplianceRiskScorer",
    "AlertPlan",
    "alert_condition",
    "plan_alerts",
]
