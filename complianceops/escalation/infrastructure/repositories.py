"""
Escalation Infrastructure Repositories
======================================

SQLAlchemy implementations of the escalation repositories.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from complianceops.config import EscalationAction, EscalationSeverity, Priority
from complianceops.core import DuplicateEscalationExecution, ResourceNotFoundException
from complianceops.escalation.application.services import (
    IEscalationExecutionRepository,
    IEscalationRuleRepository,
)
from complianceops.escalation.domain import (
    EscalationExecution,
    EscalationRule,
    EscalationTier,
    parse_trigger,
)
from complianceops.escalation.infrastructure.models import (
    EscalationExecutionModel,
    EscalationRuleModel,
)
from complianceops.infrastructure.database import insert_ignoring_conflicts
from complianceops.workflow.domain import ServiceRequestStatus


class SQLAlchemyEscalationRuleRepository(IEscalationRuleRepository):
    """SQLAlchemy implementation of escalation rule repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: EscalationRuleModel) -> EscalationRule:
        return EscalationRule(
            id=model.id,
            rule_key=model.rule_key,
            name=model.name,
            trigger=parse_trigger(model.trigger, model.rule_key),
            tiers=tuple(EscalationTier.from_dict(t) for t in model.tiers),
            service_key=model.service_key,
            status_filter=frozenset(ServiceRequestStatus(s) for s in model.status_filter or ()),
            priority_filter=frozenset(Priority(p) for p in model.priority_filter or ()),
            auto_reassign=model.auto_reassign,
            reassign_to_role=model.reassign_to_role,
            notify_client=model.notify_client,
            create_incident=model.create_incident,
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: EscalationRuleModel, rule: EscalationRule) -> None:
        model.rule_key = rule.rule_key
        model.name = rule.name
        model.trigger = rule.trigger.to_dict()
        model.tiers = [tier.to_dict() for tier in rule.tiers]
        model.service_key = rule.service_key
        model.status_filter = sorted(s.value for s in rule.status_filter)
        model.priority_filter = sorted(p.value for p in rule.priority_filter)
        model.auto_reassign = rule.auto_reassign
        model.reassign_to_role = rule.reassign_to_role
        model.notify_client = rule.notify_client
        model.create_incident = rule.create_incident
        model.is_active = rule.is_active
        model.created_at = rule.created_at
        model.updated_at = rule.updated_at

    async def get(self, rule_id: str) -> Optional[EscalationRule]:
        model = await self._session.get(EscalationRuleModel, rule_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def get_by_key(self, rule_key: str) -> Optional[EscalationRule]:
        result = await self._session.execute(
            select(EscalationRuleModel).where(EscalationRuleModel.rule_key == rule_key)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def list(self, active_only: bool = False) -> List[EscalationRule]:
        stmt = select(EscalationRuleModel)
        if active_only:
            stmt = stmt.where(EscalationRuleModel.is_active.is_(True))
        stmt = stmt.order_by(EscalationRuleModel.rule_key)

        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def add(self, rule: EscalationRule) -> None:
        model = EscalationRuleModel(id=rule.id)
        self._apply(model, rule)
        self._session.add(model)
        await self._session.flush()

    async def update(self, rule: EscalationRule) -> None:
        model = await self._session.get(EscalationRuleModel, rule.id)
        if model is None:
            raise ResourceNotFoundException("EscalationRule", rule.id)
        self._apply(model, rule)
        await self._session.flush()


class SQLAlchemyEscalationExecutionRepository(IEscalationExecutionRepository):
    """
    SQLAlchemy implementation of escalation execution repository.

    Inserts skip on the (rule, work item, tier) constraint instead of raising
    an integrity error, so a lost race leaves the transaction usable.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: EscalationExecutionModel) -> EscalationExecution:
        return EscalationExecution(
            id=model.id,
            rule_id=model.rule_id,
            work_item_id=model.work_item_id,
            tier=model.tier,
            severity=EscalationSeverity(model.severity),
            progress_percent=model.progress_percent,
            fired_at=model.fired_at,
            actions=tuple(EscalationAction(a) for a in model.actions or ()),
            notified_roles=tuple(model.notified_roles or ()),
            previous_assignee=model.previous_assignee,
            reassign_role=model.reassign_role,
            new_assignee=model.new_assignee,
        )

    async def add(self, execution: EscalationExecution) -> None:
        stmt = insert_ignoring_conflicts(self._session, EscalationExecutionModel, {
            "id": execution.id,
            "rule_id": execution.rule_id,
            "work_item_id": execution.work_item_id,
            "tier": execution.tier,
            "severity": execution.severity.value,
            "progress_percent": execution.progress_percent,
            "fired_at": execution.fired_at,
            "actions": [a.value for a in execution.actions],
            "notified_roles": list(execution.notified_roles),
            "previous_assignee": execution.previous_assignee,
            "reassign_role": execution.reassign_role,
            "new_assignee": execution.new_assignee,
        })
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise DuplicateEscalationExecution(
                execution.rule_id, execution.work_item_id, execution.tier
            )

    async def fired_tiers(self, work_item_id: str) -> Dict[str, Set[int]]:
        result = await self._session.execute(
            select(EscalationExecutionModel.rule_id, EscalationExecutionModel.tier)
            .where(EscalationExecutionModel.work_item_id == work_item_id)
        )
        fired: Dict[str, Set[int]] = defaultdict(set)
        for rule_id, tier in result.all():
            fired[rule_id].add(tier)
        return dict(fired)

    async def list(self, work_item_id: Optional[str] = None, limit: int = 100) -> List[EscalationExecution]:
        stmt = select(EscalationExecutionModel)
        if work_item_id is not None:
            stmt = stmt.where(EscalationExecutionModel.work_item_id == work_item_id)
        stmt = stmt.order_by(
            EscalationExecutionModel.fired_at.desc(),
            EscalationExecutionModel.tier.desc(),
        ).limit(limit)

        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def record_reassignment(self, execution_id: str, new_assignee: str) -> None:
        result = await self._session.execute(
            update(EscalationExecutionModel)
            .where(EscalationExecutionModel.id == execution_id)
            .values(new_assignee=new_assignee)
        )
        if result.rowcount == 0:
            raise ResourceNotFoundException("EscalationExecution", execution_id)
