"""
Shared API Dependencies
=======================

FastAPI dependencies used by more than one bounded context.
"""

from functools import lru_cache
from typing import TYPE_CHECKING, Optional
from zoneinfo import ZoneInfo

from fastapi import Request

from complianceops.compliance.domain import ComplianceRiskScorer
from complianceops.config import settings
from complianceops.sla.domain import BusinessCalendar, SlaDeadlineCalculator

if TYPE_CHECKING:
    from complianceops.escalation.infrastructure.external import OpsConfig
    from complianceops.scheduler import RecalculationScheduler


def get_scheduler(request: Request) -> Optional["RecalculationScheduler"]:
    """Scheduler started by the application lifespan, if any."""
    return getattr(request.app.state, "scheduler", None)


@lru_cache()
def get_scorer() -> ComplianceRiskScorer:
    """Risk scorer using the configured evaluation timezone."""
    return ComplianceRiskScorer(tz=ZoneInfo(settings.evaluation_timezone))


def _ops_config(request: Request) -> Optional["OpsConfig"]:
    manager = getattr(request.app.state, "ops_config", None)
    return manager.config if manager is not None else None


def get_deadline_calculator(request: Request) -> Optional[SlaDeadlineCalculator]:
    """
    Deadline calculator from the current ops config.

    Built per request so a hot-reloaded config applies immediately. None
    when no config is loaded.
    """
    config = _ops_config(request)
    if config is None:
        return None
    return config.deadline_calculator(get_scorer().tz)


def get_business_calendar(request: Request) -> BusinessCalendar:
    config = _ops_config(request)
    if config is None:
        return BusinessCalendar(tz=get_scorer().tz)
    return config.business_hours.to_calendar(get_scorer().tz)
