"""
SLA Value Objects
==================

Pure functions for SLA deadline evaluation.

Stateless utilities: everything here depends only on its arguments and the
evaluation instant handed in by the caller.
"""

from datetime import datetime
from typing import Optional

from complianceops.config import SLAStatus, BreachSeverity

CRITICAL_HOURS = 4.0
AT_RISK_HOURS = 24.0
MAJOR_BREACH_HOURS = 24.0
CRITICAL_BREACH_HOURS = 48.0

OVERALL_SLA_BREACH = "overall_sla"


def hours_remaining(deadline: datetime, now: datetime, paused_at: Optional[datetime] = None) -> float:
    """
    Hours until ``deadline`` (negative once it has passed).

    While the SLA clock is paused the count stays where the pause began.
    """
    reference = paused_at if paused_at is not None and paused_at < now else now
    return (deadline - reference).total_seconds() / 3600


def evaluate_sla(
    deadline: Optional[datetime],
    completed: bool,
    now: datetime,
    paused_at: Optional[datetime] = None,
) -> SLAStatus:
    """
    Map a work item's SLA deadline and completion to an SLA bucket.

    Boundaries are inclusive on the lower bucket: exactly 4.0 hours left is
    critical, exactly 24.0 hours left is at_risk. A paused clock reports
    paused, unless the deadline had already passed when the pause began.

    Args:
        deadline: Absolute SLA deadline, or None when no SLA applies
        completed: Whether the work item has finished
        now: Evaluation instant
        paused_at: Start of the current SLA pause, if the clock is stopped

    Returns:
        SLAStatus bucket
    """
    if deadline is None:
        return SLAStatus.NO_SLA
    if completed:
        return SLAStatus.COMPLETED

    hours = hours_remaining(deadline, now, paused_at)

    if hours < 0:
        return SLAStatus.BREACHED
    if paused_at is not None:
        return SLAStatus.PAUSED
    if hours <= CRITICAL_HOURS:
        return SLAStatus.CRITICAL
    if hours <= AT_RISK_HOURS:
        return SLAStatus.AT_RISK
    return SLAStatus.ON_TRACK


def breach_severity(hours_over: float) -> BreachSeverity:
    """Severity of a breach from how far past the deadline it is."""
    if hours_over > CRITICAL_BREACH_HOURS:
        return BreachSeverity.CRITICAL
    if hours_over > MAJOR_BREACH_HOURS:
        return BreachSeverity.MAJOR
    return BreachSeverity.MINOR
