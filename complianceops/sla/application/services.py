"""
SLA Application Services
=========================

Breach detection for work items, the breach's own lifecycle, deadline
exception grants and SLA reporting.
"""

import uuid
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from complianceops.config import ActivityType, BreachStatus, SLAStatus
from complianceops.core import ResourceNotFoundException, ValidationException
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.shared.infrastructure.logging import get_logger
from complianceops.sla.domain import (
    OVERALL_SLA_BREACH,
    BusinessCalendar,
    SlaBreach,
    SlaException,
    breach_severity,
    evaluate_sla,
    hours_remaining,
)
from complianceops.workflow.domain import ActivityEntry, ServiceRequest

logger = get_logger(__name__)

DELAY_APOLOGY = "We apologize for the delay. Our team is prioritizing your request."
DEFAULT_METRICS_WINDOW = timedelta(days=30)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISlaBreachRepository(ABC):
    """Interface for SLA breach data access."""

    @abstractmethod
    async def get(self, breach_id: str) -> Optional[SlaBreach]:
        """Get breach by ID."""

    @abstractmethod
    async def add_if_absent(self, breach: SlaBreach) -> bool:
        """
        Insert unless a breach for (work item, deadline) already exists.

        Returns:
            True if the breach was inserted
        """

    @abstractmethod
    async def update(self, breach: SlaBreach) -> None:
        """Persist lifecycle changes."""

    @abstractmethod
    async def list(
        self,
        status: Optional[BreachStatus] = None,
        work_item_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SlaBreach]:
        """List breaches, newest first."""

    @abstractmethod
    async def list_for_work_items(self, work_item_ids: Sequence[str]) -> List[SlaBreach]:
        """Every breach recorded for the given work items."""


class ISlaExceptionRepository(ABC):
    """Interface for SLA exception grants."""

    @abstractmethod
    async def add(self, exception: SlaException) -> None:
        """Store a grant."""

    @abstractmethod
    async def list(self, work_item_id: str) -> List[SlaException]:
        """Grants for a work item, newest first."""


# ========== Application Services ==========

class SlaBreachService:
    """
    Service for SLA breaches.

    ``record_breach`` does not commit: the caller decides whether the breach
    and any follow-up status change land in one transaction.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._uow = uow
        self._clock = clock

    async def record_breach(self, item: ServiceRequest, now: datetime) -> Optional[SlaBreach]:
        """
        Record a breach for an item whose SLA deadline has passed.

        Returns:
            The new SlaBreach, or None when one already exists for
            (item, deadline) or the item is not breached
        """
        if item.sla_deadline is None or item.is_terminal:
            return None

        hours_over = -hours_remaining(item.sla_deadline, now, item.sla_paused_at)
        if hours_over <= 0:
            return None

        breach = SlaBreach(
            id=str(uuid.uuid4()),
            work_item_id=item.id,
            entity_id=item.entity_id,
            deadline=item.sla_deadline,
            detected_at=now,
            hours_over=round(hours_over, 2),
            severity=breach_severity(hours_over),
            breach_type=OVERALL_SLA_BREACH,
        )

        if not await self._uow.sla_breaches.add_if_absent(breach):
            return None

        await self._uow.activities.add(ActivityEntry(
            work_item_id=item.id,
            activity_type=ActivityType.SLA_BREACH,
            description=f"SLA deadline missed by {breach.hours_over}h ({breach.severity.value})",
            occurred_at=now,
            new_value={"breach_id": breach.id, "severity": breach.severity.value},
            client_visible=True,
            client_message=DELAY_APOLOGY,
        ))

        logger.warning(
            "SLA breach detected",
            extra={
                "work_item_id": item.id,
                "breach_id": breach.id,
                "severity": breach.severity.value,
                "hours_over": breach.hours_over,
            }
        )
        return breach

    async def get(self, breach_id: str) -> SlaBreach:
        breach = await self._uow.sla_breaches.get(breach_id)
        if breach is None:
            raise ResourceNotFoundException("SlaBreach", breach_id)
        return breach

    async def list_breaches(
        self,
        status: Optional[BreachStatus] = None,
        work_item_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SlaBreach]:
        return await self._uow.sla_breaches.list(status, work_item_id, limit)

    async def acknowledge(self, breach_id: str, notes: Optional[str] = None) -> SlaBreach:
        breach = await self.get(breach_id)
        breach.acknowledge(self._clock(), notes)
        return await self._save(breach)

    async def investigate(self, breach_id: str, notes: Optional[str] = None) -> SlaBreach:
        breach = await self.get(breach_id)
        breach.investigate(self._clock(), notes)
        return await self._save(breach)

    async def resolve(self, breach_id: str, notes: Optional[str] = None) -> SlaBreach:
        breach = await self.get(breach_id)
        breach.resolve(self._clock(), notes)
        return await self._save(breach)

    async def _save(self, breach: SlaBreach) -> SlaBreach:
        await self._uow.sla_breaches.update(breach)
        await self._uow.commit()
        logger.info(
            "SLA breach updated",
            extra={"breach_id": breach.id, "status": breach.status.value}
        )
        return breach


class SlaExceptionService:
    """
    Grants deadline extensions on open work items.

    A grant moves the item's deadline, leaves an SlaException audit record
    and a client-visible activity entry, all in one commit. An item already
    in the sla_breached overlay stays there until someone resolves it.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._uow = uow
        self._clock = clock

    async def grant(
        self,
        work_item_id: str,
        extension_hours: float,
        reason: str,
        granted_by: str,
    ) -> SlaException:
        item = await self._uow.service_requests.get(work_item_id)
        if item is None:
            raise ResourceNotFoundException("ServiceRequest", work_item_id)
        if extension_hours <= 0:
            raise ValidationException("extension_hours must be positive", {"extension_hours": extension_hours})
        if item.is_terminal:
            raise ValidationException(
                "Cannot extend the SLA of a finished work item",
                {"work_item_id": work_item_id, "status": item.status.value},
            )
        if item.sla_deadline is None:
            raise ValidationException("Work item has no SLA deadline", {"work_item_id": work_item_id})

        now = self._clock()
        exception = SlaException(
            id=str(uuid.uuid4()),
            work_item_id=item.id,
            entity_id=item.entity_id,
            previous_deadline=item.sla_deadline,
            new_deadline=item.sla_deadline + timedelta(hours=extension_hours),
            extension_hours=extension_hours,
            reason=reason,
            granted_by=granted_by,
            granted_at=now,
        )

        await self._uow.service_requests.set_sla_deadline(item.id, exception.new_deadline, now)
        await self._uow.sla_exceptions.add(exception)
        await self._uow.activities.add(ActivityEntry(
            work_item_id=item.id,
            activity_type=ActivityType.SLA_EXCEPTION,
            description=f"SLA extended by {extension_hours}h: {reason}",
            occurred_at=now,
            actor_id=granted_by,
            trigger_source="manual",
            previous_value={"sla_deadline": exception.previous_deadline.isoformat()},
            new_value={"sla_deadline": exception.new_deadline.isoformat()},
            client_visible=True,
            client_message=f"The target date for your request has moved to {exception.new_deadline:%d %b %Y %H:%M} UTC.",
        ))
        await self._uow.commit()

        logger.info(
            "SLA exception granted",
            extra={
                "work_item_id": item.id,
                "exception_id": exception.id,
                "extension_hours": extension_hours,
                "granted_by": granted_by,
                "new_deadline": exception.new_deadline.isoformat(),
            }
        )
        return exception

    async def list_exceptions(self, work_item_id: str) -> List[SlaException]:
        if await self._uow.service_requests.get(work_item_id) is None:
            raise ResourceNotFoundException("ServiceRequest", work_item_id)
        return await self._uow.sla_exceptions.list(work_item_id)


@dataclass
class SlaSummary:
    """Open work items per SLA bucket at one instant."""
    evaluated_at: datetime
    total: int
    buckets: Dict[str, int]


@dataclass
class ServiceCompliance:
    total: int = 0
    breached: int = 0

    @property
    def compliance_rate(self) -> float:
        return _rate(self.total - self.breached, self.total)


@dataclass
class SlaMetrics:
    """SLA performance of work items completed in [since, until)."""
    since: datetime
    until: datetime
    total: int
    on_time: int
    breached: int
    average_completion_hours: Optional[float]
    average_business_hours: Optional[float]
    by_service: Dict[str, ServiceCompliance] = field(default_factory=dict)
    breach_types: Dict[str, int] = field(default_factory=dict)

    @property
    def compliance_percentage(self) -> float:
        return _rate(self.on_time, self.total)


def _rate(part: int, total: int) -> float:
    # An empty window has nothing out of compliance
    if total == 0:
        return 100.0
    return round(part / total * 100, 1)


class SlaReportingService:
    """Read-only SLA summary and compliance metrics."""

    def __init__(
        self,
        uow: IUnitOfWork,
        calendar: Optional[BusinessCalendar] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._uow = uow
        self._calendar = calendar or BusinessCalendar()
        self._clock = clock

    async def summary(self, now: Optional[datetime] = None) -> SlaSummary:
        now = now or self._clock()
        items = await self._uow.service_requests.list_open()
        counts = Counter(
            evaluate_sla(item.sla_deadline, item.is_terminal, now, item.sla_paused_at)
            for item in items
        )
        buckets = {
            status.value: counts.get(status, 0)
            for status in SLAStatus
            if status is not SLAStatus.COMPLETED
        }
        return SlaSummary(evaluated_at=now, total=len(items), buckets=buckets)

    async def metrics(
        self,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> SlaMetrics:
        """
        Compliance over items completed in the window (default: last 30 days).

        An item counts as breached when a breach was recorded for it or it
        finished after its deadline. Items without a deadline count as on time.
        """
        until = until or self._clock()
        since = since or until - DEFAULT_METRICS_WINDOW
        if since >= until:
            raise ValidationException(
                "Metrics window must end after it starts",
                {"from": since.isoformat(), "to": until.isoformat()},
            )

        items = await self._uow.service_requests.list_completed(since, until)
        breaches = await self._uow.sla_breaches.list_for_work_items([item.id for item in items])
        breached_ids = {b.work_item_id for b in breaches}

        by_service: Dict[str, ServiceCompliance] = {}
        elapsed_hours = []
        business_hours = []
        breached = 0

        for item in items:
            finished_at = item.status_changed_at
            late = item.sla_deadline is not None and finished_at > item.sla_deadline
            is_breached = item.id in breached_ids or late

            stats = by_service.setdefault(item.service_key, ServiceCompliance())
            stats.total += 1
            if is_breached:
                stats.breached += 1
                breached += 1

            elapsed_hours.append((finished_at - item.created_at).total_seconds() / 3600)
            business_hours.append(self._calendar.business_hours_between(item.created_at, finished_at))

        return SlaMetrics(
            since=since,
            until=until,
            total=len(items),
            on_time=len(items) - breached,
            breached=breached,
            average_completion_hours=_average(elapsed_hours),
            average_business_hours=_average(business_hours),
            by_service=by_service,
            breach_types=dict(Counter(b.breach_type for b in breaches)),
        )


def _average(values: List[float]) -> Optional[float]:
    return round(sum(values) / len(values), 1) if values else None
