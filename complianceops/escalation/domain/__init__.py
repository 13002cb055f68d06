"""
Escalation Domain Layer
=======================

Pure domain logic for tiered escalations.

Contains:
- Entities: rules, tiers, trigger variants, executions, decisions
- Engine: tier selection with monotonic firing
"""

from complianceops.escalation.domain.entities import (
    SlaBasedTrigger,
    TimeBasedTrigger,
    StatusBasedTrigger,
    EscalationTrigger,
    parse_trigger,
    EscalationTier,
    EscalationRule,
    EscalationDecision,
    EscalationExecution,
)
from complianceops.escalation.domain.engine import EscalationRuleEngine

__all__ = [
    "SlaBasedTrigger",
    "TimeBasedTrigger",
    "StatusBasedTrigger",
    "EscalationTrigger",
    "parse_trigger",
    "EscalationTier",
    "EscalationRule",
    "EscalationDecision",
    "EscalationExecution",
    "EscalationRuleEngine",
]
