"""
Escalation Application Services
===============================

Rule configuration, tier evaluation and side-effect dispatch.

The execution record is committed before any side effect starts; side
effects run as fire-and-forget tasks and their failures are only logged.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from complianceops.config import ActivityType, EscalationAction, Priority
from complianceops.core import (
    DuplicateEscalationExecution,
    NotificationException,
    ResourceNotFoundException,
    ValidationException,
)
from complianceops.core.unit_of_work import IUnitOfWork, UnitOfWorkFactory
from complianceops.escalation.application.dto import EscalationRuleCreate
from complianceops.escalation.domain import (
    EscalationDecision,
    EscalationExecution,
    EscalationRule,
    EscalationRuleEngine,
    EscalationTier,
    parse_trigger,
)
from complianceops.shared.infrastructure.logging import get_logger
from complianceops.workflow.domain import ActivityEntry, ServiceRequest

logger = get_logger(__name__)

CLIENT_UPDATE_MESSAGE = "Your request is taking longer than planned. A senior team member is now reviewing it."


# ========== Repository Interfaces (Dependency Inversion) ==========

class IEscalationRuleRepository(ABC):
    """Interface for escalation rule data access."""

    @abstractmethod
    async def get(self, rule_id: str) -> Optional[EscalationRule]:
        """Get rule by ID."""

    @abstractmethod
    async def get_by_key(self, rule_key: str) -> Optional[EscalationRule]:
        """Get rule by its unique key."""

    @abstractmethod
    async def list(self, active_only: bool = False) -> List[EscalationRule]:
        """List rules ordered by key."""

    @abstractmethod
    async def add(self, rule: EscalationRule) -> None:
        """Persist a new rule."""

    @abstractmethod
    async def update(self, rule: EscalationRule) -> None:
        """Replace an existing rule's configuration."""


class IEscalationExecutionRepository(ABC):
    """Interface for escalation execution records."""

    @abstractmethod
    async def add(self, execution: EscalationExecution) -> None:
        """
        Insert an execution.

        Raises:
            DuplicateEscalationExecution: (rule, work item, tier) already recorded
        """

    @abstractmethod
    async def fired_tiers(self, work_item_id: str) -> Dict[str, Set[int]]:
        """Tier numbers already fired for an item, keyed by rule ID."""

    @abstractmethod
    async def list(self, work_item_id: Optional[str] = None, limit: int = 100) -> List[EscalationExecution]:
        """Executions, newest first."""

    @abstractmethod
    async def record_reassignment(self, execution_id: str, new_assignee: str) -> None:
        """Store who an execution's reassignment picked."""


# ========== Collaborator Ports ==========

class INotificationGateway(ABC):
    """Outbound notification delivery (email/SMS/push live behind this)."""

    @abstractmethod
    async def notify_roles(self, roles: Sequence[str], payload: dict) -> bool:
        """Notify every actor holding one of ``roles``."""

    @abstractmethod
    async def notify_client(self, entity_id: str, payload: dict) -> bool:
        """Notify the client owning ``entity_id``."""

    @abstractmethod
    async def open_incident(self, payload: dict) -> bool:
        """Open an incident record."""


class IAssignmentProvider(ABC):
    """Chooses a role-qualified actor for reassignment."""

    @abstractmethod
    async def pick_assignee(self, role: str, item: ServiceRequest) -> Optional[str]:
        """Actor ID to assign, or None when no one holds the role."""


# ========== Mapping ==========

def rule_from_config(
    config: EscalationRuleCreate,
    rule_id: str,
    created_at: Optional[datetime] = None,
    updated_at: Optional[datetime] = None,
) -> EscalationRule:
    """
    Build a validated domain rule from its configuration DTO.

    Raises:
        MalformedEscalationRule: Structural problems in trigger or tiers
    """
    trigger = parse_trigger(config.trigger.model_dump(mode="json"), config.rule_key)
    tiers = tuple(EscalationTier.from_dict(t.model_dump(mode="json")) for t in config.tiers)

    return EscalationRule(
        id=rule_id,
        rule_key=config.rule_key,
        name=config.name,
        trigger=trigger,
        tiers=tiers,
        service_key=config.service_key,
        status_filter=frozenset(config.status_filter),
        priority_filter=frozenset(Priority(p) for p in config.priority_filter),
        auto_reassign=config.auto_reassign,
        reassign_to_role=config.reassign_to_role,
        notify_client=config.notify_client,
        create_incident=config.create_incident,
        is_active=config.is_active,
        created_at=created_at,
        updated_at=updated_at,
    )


# ========== Application Services ==========

class EscalationRuleService:
    """
    CRUD for escalation rules.

    Validation happens while building the domain rule, before anything is
    written.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._uow = uow
        self._clock = clock

    async def create(self, config: EscalationRuleCreate) -> EscalationRule:
        if await self._uow.escalation_rules.get_by_key(config.rule_key) is not None:
            raise ValidationException(
                f"Escalation rule '{config.rule_key}' already exists",
                {"rule_key": config.rule_key}
            )

        now = self._clock()
        rule = rule_from_config(config, str(uuid.uuid4()), created_at=now, updated_at=now)
        await self._uow.escalation_rules.add(rule)
        await self._uow.commit()

        logger.info("Escalation rule created", extra={"rule_id": rule.id, "rule_key": rule.rule_key})
        return rule

    async def update(self, rule_id: str, config: EscalationRuleCreate) -> EscalationRule:
        existing = await self.get(rule_id)

        if config.rule_key != existing.rule_key:
            clash = await self._uow.escalation_rules.get_by_key(config.rule_key)
            if clash is not None:
                raise ValidationException(
                    f"Escalation rule '{config.rule_key}' already exists",
                    {"rule_key": config.rule_key}
                )

        rule = rule_from_config(
            config, existing.id, created_at=existing.created_at, updated_at=self._clock()
        )
        await self._uow.escalation_rules.update(rule)
        await self._uow.commit()

        logger.info("Escalation rule updated", extra={"rule_id": rule.id, "rule_key": rule.rule_key})
        return rule

    async def get(self, rule_id: str) -> EscalationRule:
        rule = await self._uow.escalation_rules.get(rule_id)
        if rule is None:
            raise ResourceNotFoundException("EscalationRule", rule_id)
        return rule

    async def list_rules(self, active_only: bool = False) -> List[EscalationRule]:
        return await self._uow.escalation_rules.list(active_only)

    async def deactivate(self, rule_id: str) -> EscalationRule:
        """Rules are deactivated, not deleted; their executions stay valid."""
        rule = await self.get(rule_id)
        if rule.is_active:
            rule.is_active = False
            rule.updated_at = self._clock()
            await self._uow.escalation_rules.update(rule)
            await self._uow.commit()
            logger.info("Escalation rule deactivated", extra={"rule_id": rule_id})
        return rule

    async def seed(self, configs: Iterable[EscalationRuleCreate]) -> int:
        """
        Upsert rules by key (startup defaults).

        Returns:
            Number of rules created or replaced
        """
        now = self._clock()
        count = 0

        for config in configs:
            existing = await self._uow.escalation_rules.get_by_key(config.rule_key)
            if existing is None:
                await self._uow.escalation_rules.add(
                    rule_from_config(config, str(uuid.uuid4()), created_at=now, updated_at=now)
                )
            else:
                await self._uow.escalation_rules.update(
                    rule_from_config(config, existing.id, created_at=existing.created_at, updated_at=now)
                )
            count += 1

        await self._uow.commit()
        logger.info("Escalation rules seeded", extra={"count": count})
        return count

    async def list_executions(
        self,
        work_item_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[EscalationExecution]:
        return await self._uow.escalation_executions.list(work_item_id, limit)


class EscalationDispatcher:
    """
    Runs escalation side effects as background tasks.

    Tasks are retained until they finish so they are not garbage collected
    mid-flight; ``drain`` waits for the outstanding ones.
    """

    def __init__(
        self,
        notifier: INotificationGateway,
        assigner: Optional[IAssignmentProvider] = None,
        uow_factory: Optional[UnitOfWorkFactory] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._notifier = notifier
        self._assigner = assigner
        self._uow_factory = uow_factory
        self._clock = clock
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        item: ServiceRequest,
        decision: EscalationDecision,
        execution: EscalationExecution,
    ) -> asyncio.Task:
        task = asyncio.create_task(
            self._run(item, decision, execution),
            name=f"escalation-{execution.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(
        self,
        item: ServiceRequest,
        decision: EscalationDecision,
        execution: EscalationExecution,
    ) -> None:
        payload = {
            "execution_id": execution.id,
            "rule_key": decision.rule.rule_key,
            "rule_name": decision.rule.name,
            "tier": execution.tier,
            "severity": execution.severity.value,
            "progress_percent": round(execution.progress_percent, 2),
            "work_item_id": item.id,
            "entity_id": item.entity_id,
            "service_key": item.service_key,
            "status": item.status.value,
            "priority": item.priority.value,
            "sla_deadline": item.sla_deadline.isoformat() if item.sla_deadline else None,
            "fired_at": execution.fired_at.isoformat(),
        }

        for action in execution.actions:
            try:
                await self._perform(action, item, decision, payload)
            except NotificationException as e:
                logger.warning(
                    "Escalation notification not delivered",
                    extra={"execution_id": execution.id, "action": action.value, "error": e.message}
                )
            except Exception as e:
                logger.error(
                    "Escalation side effect failed",
                    extra={
                        "execution_id": execution.id,
                        "action": action.value,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }
                )

    async def _perform(
        self,
        action: EscalationAction,
        item: ServiceRequest,
        decision: EscalationDecision,
        payload: dict,
    ) -> None:
        if action == EscalationAction.NOTIFY:
            await self._notifier.notify_roles(list(decision.tier.notify_roles), payload)

        elif action == EscalationAction.REASSIGN:
            await self._reassign(item, decision.reassign_role, payload["execution_id"])

        elif action == EscalationAction.NOTIFY_CLIENT:
            if await self._notifier.notify_client(item.entity_id, payload):
                await self._record_client_notice(item, decision)

        elif action == EscalationAction.OPEN_INCIDENT:
            await self._notifier.open_incident(payload)

    async def _reassign(self, item: ServiceRequest, role: Optional[str], execution_id: str) -> None:
        if self._assigner is None or self._uow_factory is None or not role:
            logger.warning("Reassignment requested but not configured", extra={"work_item_id": item.id})
            return

        assignee = await self._assigner.pick_assignee(role, item)
        if assignee is None:
            logger.warning(
                "No assignee available for role",
                extra={"work_item_id": item.id, "role": role}
            )
            return

        now = self._clock()
        async with self._uow_factory() as uow:
            await uow.service_requests.assign(item.id, assignee, now)
            await uow.escalation_executions.record_reassignment(execution_id, assignee)
            await uow.activities.add(ActivityEntry(
                work_item_id=item.id,
                activity_type=ActivityType.REASSIGNMENT,
                description=f"Reassigned to {assignee} ({role}) by escalation",
                occurred_at=now,
                trigger_source="auto_escalation",
                previous_value={"assigned_to": item.assigned_to},
                new_value={"assigned_to": assignee, "role": role},
            ))
            await uow.commit()

        logger.info(
            "Work item reassigned by escalation",
            extra={
                "work_item_id": item.id,
                "role": role,
                "previous_assignee": item.assigned_to,
                "assigned_to": assignee,
            }
        )

    async def _record_client_notice(self, item: ServiceRequest, decision: EscalationDecision) -> None:
        if self._uow_factory is None:
            return
        async with self._uow_factory() as uow:
            await uow.activities.add(ActivityEntry(
                work_item_id=item.id,
                activity_type=ActivityType.CLIENT_NOTIFICATION,
                description=f"Client notified by {decision.rule.rule_key} tier {decision.tier.tier}",
                occurred_at=self._clock(),
                trigger_source="auto_escalation",
                client_visible=True,
                client_message=CLIENT_UPDATE_MESSAGE,
            ))
            await uow.commit()


class EscalationService:
    """
    Evaluates escalation rules for one work item and records fired tiers.

    Deduplication relies on the repository's uniqueness guard, never on
    in-process state.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        dispatcher: Optional[EscalationDispatcher] = None,
        engine: Optional[EscalationRuleEngine] = None,
    ):
        self._uow = uow
        self._dispatcher = dispatcher
        self._engine = engine or EscalationRuleEngine()

    async def evaluate(self, item: ServiceRequest, now: datetime) -> List[EscalationExecution]:
        """
        Fire at most one new tier per matching rule.

        Returns:
            Executions created by this call
        """
        if item.is_terminal:
            return []

        rules = await self._uow.escalation_rules.list(active_only=True)
        if not rules:
            return []

        fired = await self._uow.escalation_executions.fired_tiers(item.id)
        decisions = self._engine.evaluate(rules, item, now, fired)

        created = []
        for decision in decisions:
            actions = tuple(sorted(decision.actions, key=lambda a: a.value))
            execution = EscalationExecution(
                id=str(uuid.uuid4()),
                rule_id=decision.rule.id,
                work_item_id=item.id,
                tier=decision.tier.tier,
                severity=decision.tier.severity,
                progress_percent=decision.progress_percent,
                fired_at=now,
                actions=actions,
                notified_roles=decision.tier.notify_roles if EscalationAction.NOTIFY in actions else (),
                previous_assignee=item.assigned_to,
                reassign_role=decision.reassign_role if EscalationAction.REASSIGN in actions else None,
            )
            try:
                await self._uow.escalation_executions.add(execution)
            except DuplicateEscalationExecution as e:
                logger.debug("Escalation tier already fired", extra=e.details)
                continue
            await self._uow.activities.add(ActivityEntry(
                work_item_id=item.id,
                activity_type=ActivityType.ESCALATION,
                description=f"{decision.rule.name}: tier {execution.tier} ({execution.severity.value}) at "
                            f"{execution.progress_percent:.0f}%",
                occurred_at=now,
                trigger_source="automation",
                new_value={
                    "execution_id": execution.id,
                    "rule_key": decision.rule.rule_key,
                    "tier": execution.tier,
                    "actions": [a.value for a in actions],
                },
            ))
            created.append((decision, execution))

        if not created:
            return []

        await self._uow.commit()

        for decision, execution in created:
            logger.info(
                "Escalation tier fired",
                extra={
                    "work_item_id": item.id,
                    "rule_key": decision.rule.rule_key,
                    "tier": execution.tier,
                    "severity": execution.severity.value,
                    "progress_percent": round(execution.progress_percent, 2),
                }
            )
            if self._dispatcher is not None:
                self._dispatcher.dispatch(item, decision, execution)

        return [execution for _, execution in created]
