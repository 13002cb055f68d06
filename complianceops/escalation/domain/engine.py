"""
Escalation Rule Engine
======================

Decides which escalation tier, if any, fires for a work item.

Firing is monotonic: once a tier has fired for (rule, item), neither it nor
any lower tier fires again, even if the item regresses and re-advances.
"""

from datetime import datetime
from typing import Iterable, List, Mapping, Optional

from complianceops.escalation.domain.entities import (
    EscalationDecision,
    EscalationRule,
)
from complianceops.workflow.domain import ServiceRequest


class EscalationRuleEngine:
    """Pure decision logic; persistence and side effects live in the service layer."""

    def matches(self, rule: EscalationRule, item: ServiceRequest) -> bool:
        return rule.is_active and not item.is_terminal and rule.applies_to(item)

    def decide(
        self,
        rule: EscalationRule,
        item: ServiceRequest,
        now: datetime,
        fired_tiers: Iterable[int] = (),
    ) -> Optional[EscalationDecision]:
        """
        Select the tier to fire for one rule and item.

        Args:
            rule: Active, structurally valid rule
            item: Work item under evaluation
            now: Evaluation instant
            fired_tiers: Tier numbers already executed for (rule, item)

        Returns:
            EscalationDecision, or None when nothing should fire
        """
        if not self.matches(rule, item):
            return None

        progress = rule.trigger.progress(item, now)
        if progress is None:
            return None

        reached = None
        for tier in rule.tiers:
            if progress >= tier.threshold_percent:
                reached = tier
            else:
                break

        if reached is None:
            return None

        fired = set(fired_tiers)
        if fired and max(fired) >= reached.tier:
            return None

        return EscalationDecision(rule=rule, tier=reached, progress_percent=progress)

    def evaluate(
        self,
        rules: Iterable[EscalationRule],
        item: ServiceRequest,
        now: datetime,
        fired_by_rule: Mapping[str, Iterable[int]],
    ) -> List[EscalationDecision]:
        """Decisions for every rule that should fire a tier for ``item``."""
        decisions = []
        for rule in rules:
            decision = self.decide(rule, item, now, fired_by_rule.get(rule.id, ()))
            if decision is not None:
                decisions.append(decision)
        return decisions
