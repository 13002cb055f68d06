"""
Scheduler Module
================

Periodic and on-demand recalculation of compliance health, SLA breaches
and escalation tiers.
"""

from complianceops.scheduler.service import (
    RecalculationScheduler,
    RecalculationResult,
    ItemEvaluation,
    PassSummary,
)

__all__ = [
    "RecalculationScheduler",
    "RecalculationResult",
    "ItemEvaluation",
    "PassSummary",
]
