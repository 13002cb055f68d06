"""
SLA Domain Entities
====================

Pure Python domain entities for SLA breach tracking.

A breach has its own lifecycle, independent of the work item it was raised
for: resolving a breach never changes the item's status and vice versa.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from complianceops.config import BreachSeverity, BreachStatus
from complianceops.core import IllegalBreachTransition

BREACH_TRANSITIONS = {
    BreachStatus.OPEN: frozenset({BreachStatus.ACKNOWLEDGED, BreachStatus.INVESTIGATING}),
    BreachStatus.ACKNOWLEDGED: frozenset({BreachStatus.INVESTIGATING, BreachStatus.RESOLVED}),
    BreachStatus.INVESTIGATING: frozenset({BreachStatus.RESOLVED}),
    BreachStatus.RESOLVED: frozenset(),
}


@dataclass
class SlaBreach:
    """
    SLA breach entity.

    Raised once per (work item, deadline) when the deadline passes before
    the item completes.
    """

    id: str
    work_item_id: str
    entity_id: str
    deadline: datetime
    detected_at: datetime
    hours_over: float
    severity: BreachSeverity
    breach_type: str = "overall_sla"
    status: BreachStatus = BreachStatus.OPEN
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status != BreachStatus.RESOLVED

    def _move(self, target: BreachStatus, notes: Optional[str]) -> None:
        if target not in BREACH_TRANSITIONS[self.status]:
            raise IllegalBreachTransition(self.id, self.status, target)
        self.status = target
        if notes:
            self.notes = notes if not self.notes else f"{self.notes}\n{notes}"

    def acknowledge(self, at: datetime, notes: Optional[str] = None) -> None:
        self._move(BreachStatus.ACKNOWLEDGED, notes)
        self.acknowledged_at = at

    def investigate(self, at: datetime, notes: Optional[str] = None) -> None:
        self._move(BreachStatus.INVESTIGATING, notes)
        if self.acknowledged_at is None:
            self.acknowledged_at = at

    def resolve(self, at: datetime, notes: Optional[str] = None) -> None:
        self._move(BreachStatus.RESOLVED, notes)
        self.resolved_at = at


@dataclass(frozen=True)
class SlaException:
    """
    Granted extension of a work item's SLA deadline.

    Kept as an audit record; the item's deadline itself is moved by the
    service that grants it.
    """

    id: str
    work_item_id: str
    entity_id: str
    previous_deadline: datetime
    new_deadline: datetime
    extension_hours: float
    reason: str
    granted_by: str
    granted_at: datetime
