"""
Compliance Risk
===============

Pure functions for deadline classification and per-entity health scoring.

Stateless and deterministic: given the same obligations and evaluation
instant the scorer always returns an equal ComplianceState.
"""

import math
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional, Union

from complianceops.config import (
    ComplianceGrade, DeadlineRisk, ObligationStatus, PRIORITY_RANK
)
from complianceops.compliance.domain.entities import (
    ComplianceObligation, ComplianceState, NextDeadline
)

DANGER_DAYS = 3
WARNING_DAYS = 7
OVERDUE_PENALTY_POINTS = 10
GREEN_THRESHOLD = 80
AMBER_THRESHOLD = 60


def classify_deadline(
    due: Union[date, datetime, None],
    status: ObligationStatus,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> Optional[DeadlineRisk]:
    """
    Map one obligation's due date and status to a risk bucket.

    Day counting is the calendar-day difference in ``tz``, not elapsed
    hours, so every obligation in one pass sees the same "today".

    Args:
        due: Due date (a plain date, or an aware datetime)
        status: Completion status of the obligation
        now: Evaluation instant (aware)
        tz: Time zone that defines calendar days

    Returns:
        DeadlineRisk, or None for completed obligations
    """
    if ObligationStatus(status) == ObligationStatus.COMPLETED:
        return None

    if due is None:
        return DeadlineRisk.SAFE

    today = now.astimezone(tz).date()

    if isinstance(due, datetime):
        if due < now:
            return DeadlineRisk.OVERDUE
        due_day = due.astimezone(tz).date()
    else:
        due_day = due

    days_until_due = (due_day - today).days

    if days_until_due < 0:
        return DeadlineRisk.OVERDUE
    if days_until_due <= DANGER_DAYS:
        return DeadlineRisk.DANGER
    if days_until_due <= WARNING_DAYS:
        return DeadlineRisk.WARNING
    return DeadlineRisk.SAFE


def grade_for(health_score: int) -> ComplianceGrade:
    if health_score >= GREEN_THRESHOLD:
        return ComplianceGrade.GREEN
    if health_score >= AMBER_THRESHOLD:
        return ComplianceGrade.AMBER
    return ComplianceGrade.RED


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class ComplianceRiskScorer:
    """
    Aggregates an entity's obligations into a health grade and exposure.

    health = clamp(round(completed / total * 100 - overdue * 10), 0, 100)
    """

    def __init__(self, tz: tzinfo = timezone.utc, overdue_penalty: int = OVERDUE_PENALTY_POINTS):
        self._tz = tz
        self._overdue_penalty = overdue_penalty

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def score(
        self,
        entity_id: str,
        obligations: Iterable[ComplianceObligation],
        now: datetime,
    ) -> ComplianceState:
        """
        Compute the compliance state of one entity.

        Archived obligations are included; they are always completed and
        count towards the base score.
        """
        obligations = list(obligations)
        total = len(obligations)
        completed = 0
        overdue = 0
        upcoming = 0
        exposure = Decimal("0")
        open_items = []

        for obligation in obligations:
            risk = classify_deadline(obligation.due_date, obligation.status, now, self._tz)
            if risk is None:
                completed += 1
                continue

            open_items.append((obligation, risk))
            exposure += Decimal(obligation.penalty_risk)
            if risk == DeadlineRisk.OVERDUE:
                overdue += 1
            elif risk in (DeadlineRisk.DANGER, DeadlineRisk.WARNING):
                upcoming += 1

        base_score = (completed / total) * 100 if total else 100.0
        deduction = overdue * self._overdue_penalty
        health = min(100, max(0, _round_half_up(base_score - deduction)))

        return ComplianceState(
            entity_id=entity_id,
            grade=grade_for(health),
            health_score=health,
            risk_score=100 - health,
            penalty_exposure=exposure,
            overdue_count=overdue,
            upcoming_count=upcoming,
            total_count=total,
            completed_count=completed,
            next_deadline=self._next_deadline(open_items),
            calculated_at=now,
        )

    @staticmethod
    def _next_deadline(open_items) -> Optional[NextDeadline]:
        """Earliest due date, then highest priority, then lowest id."""
        if not open_items:
            return None

        obligation, risk = min(
            open_items,
            key=lambda pair: (
                pair[0].due_date is None,
                pair[0].due_date or date.max,
                PRIORITY_RANK[pair[0].priority],
                pair[0].id,
            ),
        )
        return NextDeadline(
            obligation_id=obligation.id,
            title=obligation.title,
            due_date=obligation.due_date,
            priority=obligation.priority,
            risk=risk,
        )
