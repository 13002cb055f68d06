"""
Recalculation Scheduler
=======================

Background evaluation of compliance health, SLA breaches and escalations.

One APScheduler interval job drives periodic passes. Work is guarded per
entity and per work item: a periodic pass skips anything already being
evaluated, while on-demand triggers wait for the guard. Every entity and
item runs in its own unit of work so one failure never aborts the pass.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import AsyncIterator, Callable, Dict, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from complianceops.compliance.application import ComplianceService
from complianceops.compliance.domain import ComplianceRiskScorer, ComplianceState
from complianceops.config import SLAStatus
from complianceops.core import StaleTransition
from complianceops.core.unit_of_work import UnitOfWorkFactory
from complianceops.escalation.application import (
    EscalationDispatcher,
    EscalationService,
    IAssignmentProvider,
    INotificationGateway,
)
from complianceops.escalation.domain import EscalationExecution, EscalationRuleEngine
from complianceops.shared.infrastructure.logging import get_logger, log_latency
from complianceops.sla.application import SlaBreachService
from complianceops.sla.domain import SlaBreach, evaluate_sla
from complianceops.workflow.application import ServiceRequestService
from complianceops.workflow.domain import (
    ServiceRequestStateMachine,
    ServiceRequestStatus,
    StatusChangedEvent,
)

logger = get_logger(__name__)

JOB_ID = "compliance_recalculation"


@dataclass(frozen=True)
class RecalculationResult:
    state: ComplianceState
    changed: bool


@dataclass(frozen=True)
class ItemEvaluation:
    """Outcome of evaluating one work item."""
    work_item_id: str
    sla_status: Optional[SLAStatus]
    breach: Optional[SlaBreach] = None
    flagged: bool = False
    executions: Tuple[EscalationExecution, ...] = ()


@dataclass
class PassSummary:
    """Counters for one scheduler pass."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    entities_recalculated: int = 0
    entities_skipped: int = 0
    states_changed: int = 0
    items_evaluated: int = 0
    items_skipped: int = 0
    breaches_recorded: int = 0
    items_flagged: int = 0
    escalations_fired: int = 0
    failures: int = 0
    failed_keys: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "entities_recalculated": self.entities_recalculated,
            "entities_skipped": self.entities_skipped,
            "states_changed": self.states_changed,
            "items_evaluated": self.items_evaluated,
            "items_skipped": self.items_skipped,
            "breaches_recorded": self.breaches_recorded,
            "items_flagged": self.items_flagged,
            "escalations_fired": self.escalations_fired,
            "failures": self.failures,
        }


class KeyedLocks:
    """
    One asyncio.Lock per key, dropped once nobody holds or waits for it.

    The scheduler sees every entity and work item ever evaluated, so the
    map only keeps keys that are in use right now.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: str) -> bool:
        return key in self._locks

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


class RecalculationScheduler:
    """
    Periodic and on-demand evaluation of entities and work items.

    The per-key locks only serialize evaluation inside this process;
    deduplication of breaches and escalation tiers is left to the database.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifier: INotificationGateway,
        assigner: Optional[IAssignmentProvider] = None,
        interval_seconds: int = 300,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        auto_flag_sla_breach: bool = True,
        system_actor_id: str = "system",
    ):
        self._uow_factory = uow_factory
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._auto_flag = auto_flag_sla_breach
        self._system_actor_id = system_actor_id

        self._scorer = ComplianceRiskScorer(tz=tz)
        self._machine = ServiceRequestStateMachine()
        self._engine = EscalationRuleEngine()
        self._dispatcher = EscalationDispatcher(notifier, assigner, uow_factory, clock)

        self._entity_locks = KeyedLocks()
        self._item_locks = KeyedLocks()
        self._tasks: Set[asyncio.Task] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None

    # ========== Lifecycle ==========

    async def start(self) -> None:
        """Start the interval job; an interval of 0 leaves the timer off."""
        if self.interval_seconds <= 0:
            logger.info("Recalculation timer disabled")
            return

        if self.is_running:
            logger.warning("Recalculation scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._tick,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            name="Compliance Recalculation Pass",
            coalesce=True,
            max_instances=1,
            misfire_grace_time=self.interval_seconds,
            replace_existing=True
        )
        self._scheduler.start()

        logger.info(
            "Recalculation scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the timer and wait for in-flight on-demand work."""
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=True)
            self._scheduler = None
            logger.info("Recalculation scheduler stopped")
        await self.drain()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def drain(self) -> None:
        """Wait for spawned evaluations and escalation side effects."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._dispatcher.drain()

    async def _tick(self) -> None:
        with log_latency(logger, "recalculation_pass", trigger="timer"):
            summary = await self.run_once()
        logger.info("Recalculation pass summary", extra=summary.to_dict())

    # ========== Passes ==========

    async def run_once(self, now: Optional[datetime] = None) -> PassSummary:
        """
        Run one pass over all active entities and open work items.

        Failures are counted and logged; the next pass retries them.
        """
        now = now or self._clock()
        summary = PassSummary(started_at=now)

        async with self._uow_factory() as uow:
            entity_ids = await uow.obligations.list_active_entity_ids()
            item_ids = [item.id for item in await uow.service_requests.list_open()]

        for entity_id in entity_ids:
            try:
                result = await self.recalculate_entity(entity_id, now, wait=False)
            except Exception as e:
                summary.failures += 1
                summary.failed_keys.append(f"entity:{entity_id}")
                logger.error(
                    "Entity recalculation failed",
                    extra={"entity_id": entity_id, "error_type": type(e).__name__, "error": str(e)}
                )
                continue

            if result is None:
                summary.entities_skipped += 1
            else:
                summary.entities_recalculated += 1
                if result.changed:
                    summary.states_changed += 1

        for item_id in item_ids:
            try:
                evaluation = await self.evaluate_item(item_id, now, wait=False)
            except Exception as e:
                summary.failures += 1
                summary.failed_keys.append(f"item:{item_id}")
                logger.error(
                    "Work item evaluation failed",
                    extra={"work_item_id": item_id, "error_type": type(e).__name__, "error": str(e)}
                )
                continue

            if evaluation is None:
                summary.items_skipped += 1
                continue

            summary.items_evaluated += 1
            if evaluation.breach is not None:
                summary.breaches_recorded += 1
            if evaluation.flagged:
                summary.items_flagged += 1
            summary.escalations_fired += len(evaluation.executions)

        summary.finished_at = self._clock()
        return summary

    async def recalculate_entity(
        self,
        entity_id: str,
        now: Optional[datetime] = None,
        wait: bool = True,
    ) -> Optional[RecalculationResult]:
        """
        Recalculate one entity's compliance state.

        Returns:
            The result, or None when ``wait`` is False and the entity is
            already being recalculated
        """
        if not wait and self._entity_locks.locked(entity_id):
            logger.debug("Entity recalculation coalesced", extra={"entity_id": entity_id})
            return None

        async with self._entity_locks.hold(entity_id):
            async with self._uow_factory() as uow:
                service = ComplianceService(uow, scorer=self._scorer, clock=self._clock)
                state, changed = await service.recalculate(entity_id, now or self._clock())
            return RecalculationResult(state=state, changed=changed)

    async def evaluate_item(
        self,
        item_id: str,
        now: Optional[datetime] = None,
        wait: bool = True,
    ) -> Optional[ItemEvaluation]:
        """
        Evaluate SLA state, record breaches and fire escalation tiers.

        Returns:
            The evaluation, or None when ``wait`` is False and the item is
            already being evaluated
        """
        if not wait and self._item_locks.locked(item_id):
            logger.debug("Work item evaluation coalesced", extra={"work_item_id": item_id})
            return None

        async with self._item_locks.hold(item_id):
            now = now or self._clock()
            async with self._uow_factory() as uow:
                item = await uow.service_requests.get(item_id)
                if item is None:
                    return ItemEvaluation(work_item_id=item_id, sla_status=None)
                if item.is_terminal:
                    return ItemEvaluation(work_item_id=item_id, sla_status=SLAStatus.COMPLETED)

                sla_status = evaluate_sla(item.sla_deadline, item.is_terminal, now, item.sla_paused_at)
                breach = None
                flagged = False

                if sla_status == SLAStatus.BREACHED:
                    breach = await SlaBreachService(uow, clock=lambda: now).record_breach(item, now)

                if breach is not None:
                    flagged = await self._flag_breached(uow, item, breach, now)
                    if flagged:
                        item = await uow.service_requests.get(item_id)
                    else:
                        await uow.commit()

                escalation = EscalationService(uow, self._dispatcher, self._engine)
                executions = await escalation.evaluate(item, now)

            return ItemEvaluation(
                work_item_id=item_id,
                sla_status=sla_status,
                breach=breach,
                flagged=flagged,
                executions=tuple(executions),
            )

    async def _flag_breached(self, uow, item, breach: SlaBreach, now: datetime) -> bool:
        """Move a newly breached item into the sla_breached overlay; commits on success."""
        if not self._auto_flag:
            return False
        if not self._machine.can_transition(item, ServiceRequestStatus.SLA_BREACHED):
            return False

        service = ServiceRequestService(uow, state_machine=self._machine, clock=lambda: now)
        try:
            await service.transition(
                item.id,
                ServiceRequestStatus.SLA_BREACHED,
                self._system_actor_id,
                expected_status=item.status,
                note=f"SLA breached ({breach.severity.value}, {breach.hours_over}h over)",
            )
        except StaleTransition as e:
            logger.info("Breach flag skipped, status changed concurrently", extra=e.details)
            return False
        return True

    # ========== On-demand triggers ==========

    async def notify_status_changed(self, event: StatusChangedEvent) -> None:
        """Status change listener: re-evaluate the item right away."""
        self._spawn(
            self.evaluate_item(event.service_request_id, wait=True),
            name=f"evaluate-{event.service_request_id}",
        )

    def request_entity_recalculation(self, entity_id: str) -> None:
        self._spawn(
            self.recalculate_entity(entity_id, wait=True),
            name=f"recalculate-{entity_id}",
        )

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "On-demand evaluation failed",
                extra={"task": task.get_name(), "error_type": type(exc).__name__, "error": str(exc)}
            )
