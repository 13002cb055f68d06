"""
Escalation Domain Entities
==========================

Escalation rules, their tiers and triggers, and the execution records that
make tier firing at-most-once.

Triggers are a tagged union: each variant computes its own progress
percentage for a work item.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar, FrozenSet, List, Optional, Tuple, Union

from complianceops.config import Priority, EscalationAction, EscalationSeverity
from complianceops.core import MalformedEscalationRule
from complianceops.workflow.domain import ServiceRequest, ServiceRequestStatus


# ========== Triggers ==========

@dataclass(frozen=True)
class SlaBasedTrigger:
    """
    Progress is the share of the SLA window (created -> deadline) elapsed.

    Time on hold does not count: a paused item stays at the progress it had
    when the pause began, and finished pauses are taken out of both the
    elapsed time and the (already extended) window.
    """
    type: ClassVar[str] = "sla_based"

    def progress(self, item: ServiceRequest, now: datetime) -> Optional[float]:
        if item.sla_deadline is None:
            return None
        reference = min(now, item.sla_paused_at) if item.sla_paused_at is not None else now
        total = (item.sla_deadline - item.created_at).total_seconds() - item.sla_paused_seconds
        elapsed = (reference - item.created_at).total_seconds() - item.sla_paused_seconds
        if total <= 0:
            return 100.0 if elapsed >= 0 else 0.0
        return elapsed / total * 100

    def to_dict(self) -> dict:
        return {"type": self.type}


@dataclass(frozen=True)
class TimeBasedTrigger:
    """Progress is the item's age relative to a fixed duration."""
    duration_hours: float
    type: ClassVar[str] = "time_based"

    def progress(self, item: ServiceRequest, now: datetime) -> Optional[float]:
        age_hours = (now - item.created_at).total_seconds() / 3600
        return age_hours / self.duration_hours * 100

    def to_dict(self) -> dict:
        return {"type": self.type, "duration_hours": self.duration_hours}


@dataclass(frozen=True)
class StatusBasedTrigger:
    """
    Fires while the item sits in one of ``statuses``.

    Without a window the predicate alone means 100% progress; with a window,
    progress is the time spent in the current status relative to it.
    """
    statuses: FrozenSet[ServiceRequestStatus]
    window_hours: Optional[float] = None
    type: ClassVar[str] = "status_based"

    def progress(self, item: ServiceRequest, now: datetime) -> Optional[float]:
        if item.status not in self.statuses:
            return None
        if self.window_hours is None:
            return 100.0
        since = item.status_changed_at or item.created_at
        in_status_hours = (now - since).total_seconds() / 3600
        return in_status_hours / self.window_hours * 100

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "statuses": sorted(s.value for s in self.statuses),
            "window_hours": self.window_hours,
        }


EscalationTrigger = Union[SlaBasedTrigger, TimeBasedTrigger, StatusBasedTrigger]


def parse_trigger(data: dict, rule_key: str = "<unnamed>") -> EscalationTrigger:
    """Build a trigger variant from its serialized form."""
    kind = data.get("type")
    try:
        if kind == SlaBasedTrigger.type:
            return SlaBasedTrigger()
        if kind == TimeBasedTrigger.type:
            duration = float(data["duration_hours"])
            if duration <= 0:
                raise ValueError("duration_hours must be positive")
            return TimeBasedTrigger(duration_hours=duration)
        if kind == StatusBasedTrigger.type:
            statuses = frozenset(ServiceRequestStatus(s) for s in data["statuses"])
            if not statuses:
                raise ValueError("statuses must not be empty")
            window = data.get("window_hours")
            if window is not None and float(window) <= 0:
                raise ValueError("window_hours must be positive")
            return StatusBasedTrigger(
                statuses=statuses,
                window_hours=float(window) if window is not None else None,
            )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedEscalationRule(rule_key, [f"invalid {kind} trigger: {e}"]) from e

    raise MalformedEscalationRule(rule_key, [f"unknown trigger type: {kind!r}"])


# ========== Rules ==========

@dataclass(frozen=True)
class EscalationTier:
    """One threshold step within a rule."""
    tier: int
    threshold_percent: float
    severity: EscalationSeverity
    notify_roles: Tuple[str, ...] = ()
    actions: FrozenSet[EscalationAction] = frozenset({EscalationAction.NOTIFY})
    reassign_to_role: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "threshold_percent": self.threshold_percent,
            "severity": self.severity.value,
            "notify_roles": list(self.notify_roles),
            "actions": sorted(a.value for a in self.actions),
            "reassign_to_role": self.reassign_to_role,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EscalationTier":
        return cls(
            tier=int(data["tier"]),
            threshold_percent=float(data["threshold_percent"]),
            severity=EscalationSeverity(data["severity"]),
            notify_roles=tuple(data.get("notify_roles") or ()),
            actions=frozenset(EscalationAction(a) for a in data.get("actions", ["notify"])),
            reassign_to_role=data.get("reassign_to_role"),
        )


@dataclass
class EscalationRule:
    """
    Escalation rule configuration.

    Structural validation runs on construction, so an invalid rule can never
    reach the engine.
    """

    id: str
    rule_key: str
    name: str
    trigger: EscalationTrigger
    tiers: Tuple[EscalationTier, ...]
    service_key: Optional[str] = None
    status_filter: FrozenSet[ServiceRequestStatus] = frozenset()
    priority_filter: FrozenSet[Priority] = frozenset()
    auto_reassign: bool = False
    reassign_to_role: Optional[str] = None
    notify_client: bool = False
    create_incident: bool = False
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.tiers = tuple(self.tiers)
        self.status_filter = frozenset(self.status_filter)
        self.priority_filter = frozenset(self.priority_filter)
        self.validate()

    def validate(self) -> None:
        """Raise MalformedEscalationRule listing every structural problem."""
        problems: List[str] = []

        if not self.tiers:
            problems.append("at least one tier is required")

        for index, tier in enumerate(self.tiers, start=1):
            if tier.tier != index:
                problems.append(f"tier numbers must be sequential from 1 (found {tier.tier} at position {index})")
            if tier.threshold_percent <= 0:
                problems.append(f"tier {tier.tier} threshold must be positive")
            if EscalationAction.NOTIFY in tier.actions and not tier.notify_roles:
                problems.append(f"tier {tier.tier} notifies but lists no roles")

        thresholds = [t.threshold_percent for t in self.tiers]
        if any(later <= earlier for earlier, later in zip(thresholds, thresholds[1:])):
            problems.append("tier thresholds must be strictly ascending")

        if self.auto_reassign and not self.reassign_to_role:
            # Without a rule-level role every reassigning tier needs its own
            if not any(t.reassign_to_role for t in self.tiers):
                problems.append("auto_reassign requires reassign_to_role")
            else:
                problems.extend(
                    f"tier {t.tier} reassigns but has no reassign_to_role"
                    for t in self.tiers
                    if EscalationAction.REASSIGN in t.actions and not t.reassign_to_role
                )

        if problems:
            raise MalformedEscalationRule(self.rule_key, problems)

    def applies_to(self, item: ServiceRequest) -> bool:
        """Scope filter: service key, status and priority."""
        if self.service_key is not None and item.service_key != self.service_key:
            return False
        if self.status_filter and item.status not in self.status_filter:
            return False
        if self.priority_filter and item.priority not in self.priority_filter:
            return False
        return True

    def tier(self, number: int) -> EscalationTier:
        return self.tiers[number - 1]


# ========== Executions ==========

@dataclass(frozen=True)
class EscalationDecision:
    """A tier the engine has decided to fire for one work item."""
    rule: EscalationRule
    tier: EscalationTier
    progress_percent: float

    @property
    def actions(self) -> FrozenSet[EscalationAction]:
        """Tier actions, with the optional ones gated by the rule's flags."""
        actions = set()
        if EscalationAction.NOTIFY in self.tier.actions:
            actions.add(EscalationAction.NOTIFY)
        if self.rule.auto_reassign and EscalationAction.REASSIGN in self.tier.actions:
            actions.add(EscalationAction.REASSIGN)
        if self.rule.notify_client and EscalationAction.NOTIFY_CLIENT in self.tier.actions:
            actions.add(EscalationAction.NOTIFY_CLIENT)
        if self.rule.create_incident and EscalationAction.OPEN_INCIDENT in self.tier.actions:
            actions.add(EscalationAction.OPEN_INCIDENT)
        return frozenset(actions)

    @property
    def reassign_role(self) -> Optional[str]:
        """Tier override first, then the rule's role."""
        return self.tier.reassign_to_role or self.rule.reassign_to_role


@dataclass(frozen=True)
class EscalationExecution:
    """Durable record that a rule fired a tier for a work item."""
    id: str
    rule_id: str
    work_item_id: str
    tier: int
    severity: EscalationSeverity
    progress_percent: float
    fired_at: datetime
    actions: Tuple[EscalationAction, ...] = field(default_factory=tuple)
    notified_roles: Tuple[str, ...] = field(default_factory=tuple)
    previous_assignee: Optional[str] = None
    reassign_role: Optional[str] = None
    new_assignee: Optional[str] = None
