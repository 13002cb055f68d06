"""
Compliance Alerts
=================

Decides which obligation alerts a recalculation raises and which it
resolves.

An open obligation is alerted when it is overdue, or when it is due soon
(danger or warning window) and has urgent priority. Severity follows the
priority: urgent obligations raise critical alerts, everything else a
warning.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from complianceops.config import (
    ComplianceAlertSeverity,
    ComplianceAlertType,
    DeadlineRisk,
    Priority,
)
from complianceops.compliance.domain.entities import ComplianceAlert, ComplianceObligation
from complianceops.compliance.domain.risk import classify_deadline

UPCOMING_RISKS = frozenset({DeadlineRisk.DANGER, DeadlineRisk.WARNING})


def alert_condition(
    obligation: ComplianceObligation,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> Optional[Tuple[ComplianceAlertType, ComplianceAlertSeverity]]:
    """Alert type and severity an obligation calls for, or None."""
    risk = classify_deadline(obligation.due_date, obligation.status, now, tz)
    urgent = obligation.priority == Priority.URGENT

    if risk == DeadlineRisk.OVERDUE:
        alert_type = ComplianceAlertType.OVERDUE
    elif risk in UPCOMING_RISKS and urgent:
        alert_type = ComplianceAlertType.UPCOMING
    else:
        return None

    severity = ComplianceAlertSeverity.CRITICAL if urgent else ComplianceAlertSeverity.WARNING
    return alert_type, severity


def _new_alert(
    obligation: ComplianceObligation,
    alert_type: ComplianceAlertType,
    severity: ComplianceAlertSeverity,
    now: datetime,
) -> ComplianceAlert:
    if alert_type == ComplianceAlertType.OVERDUE:
        title = f"{obligation.title} Overdue"
        message = f"{obligation.title} was due on {obligation.due_date.isoformat()} and is not complete."
    else:
        title = f"{obligation.title} Due Soon"
        message = f"{obligation.title} is due on {obligation.due_date.isoformat()}."
    return ComplianceAlert(
        id=str(uuid.uuid4()),
        entity_id=obligation.entity_id,
        obligation_id=obligation.id,
        alert_type=alert_type,
        severity=severity,
        title=title,
        message=message,
        triggered_at=now,
        due_date=obligation.due_date,
    )


@dataclass(frozen=True)
class AlertPlan:
    raise_alerts: Tuple[ComplianceAlert, ...] = ()
    resolve_alerts: Tuple[ComplianceAlert, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.raise_alerts and not self.resolve_alerts


def plan_alerts(
    obligations: Iterable[ComplianceObligation],
    active: Iterable[ComplianceAlert],
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> AlertPlan:
    """
    Compare the alerts obligations call for with the active ones.

    An active alert whose condition is unchanged is kept. One whose
    obligation no longer qualifies is resolved; one whose type or severity
    changed is resolved and replaced.
    """
    wanted: Dict[str, Tuple[ComplianceObligation, ComplianceAlertType, ComplianceAlertSeverity]] = {}
    for obligation in obligations:
        condition = alert_condition(obligation, now, tz)
        if condition is not None:
            wanted[obligation.id] = (obligation, *condition)

    to_resolve: List[ComplianceAlert] = []
    kept = set()
    for alert in active:
        target = wanted.get(alert.obligation_id)
        unchanged = target is not None and (alert.alert_type, alert.severity) == target[1:]
        # A duplicate active alert for one obligation is resolved too
        if unchanged and alert.obligation_id not in kept:
            kept.add(alert.obligation_id)
        else:
            to_resolve.append(alert)

    to_raise = tuple(
        _new_alert(obligation, alert_type, severity, now)
        for obligation_id, (obligation, alert_type, severity) in sorted(wanted.items())
        if obligation_id not in kept
    )
    return AlertPlan(raise_alerts=to_raise, resolve_alerts=tuple(to_resolve))
