"""
Compliance Application Services
===============================

Obligation lifecycle, compliance state recalculation and obligation alerts.

ComplianceState rows are a cache over obligations; recalculation replaces
the cached row only when the derived state actually changed. Alerts are
synchronised on every recalculation, independently of the state.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from complianceops.config import ObligationStatus, Priority
from complianceops.core import ResourceNotFoundException, ValidationException
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.compliance.domain import (
    AlertPlan,
    ComplianceAlert,
    ComplianceObligation,
    ComplianceRiskScorer,
    ComplianceState,
    plan_alerts,
)
from complianceops.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class IObligationRepository(ABC):
    """Interface for compliance obligation data access."""

    @abstractmethod
    async def get(self, obligation_id: str) -> Optional[ComplianceObligation]:
        """Get obligation by ID."""

    @abstractmethod
    async def add(self, obligation: ComplianceObligation) -> None:
        """Persist a new obligation."""

    @abstractmethod
    async def update(self, obligation: ComplianceObligation) -> None:
        """Persist changes to an existing obligation."""

    @abstractmethod
    async def list_for_entity(self, entity_id: str) -> List[ComplianceObligation]:
        """All obligations of an entity, archived included."""

    @abstractmethod
    async def list_active_entity_ids(self) -> List[str]:
        """Entities with at least one non-archived obligation."""


class IComplianceStateRepository(ABC):
    """Interface for the derived compliance state cache and its history."""

    @abstractmethod
    async def get(self, entity_id: str) -> Optional[ComplianceState]:
        """Cached state for an entity."""

    @abstractmethod
    async def save(self, state: ComplianceState) -> None:
        """Insert or replace the cached state."""

    @abstractmethod
    async def append_history(self, state: ComplianceState) -> None:
        """Append a state snapshot for trend queries."""

    @abstractmethod
    async def history(self, entity_id: str, limit: int = 100) -> List[ComplianceState]:
        """Snapshots, newest first."""


class IComplianceAlertRepository(ABC):
    """Interface for obligation alerts."""

    @abstractmethod
    async def list_active(self, entity_id: str) -> List[ComplianceAlert]:
        """Active alerts of an entity."""

    @abstractmethod
    async def add(self, alert: ComplianceAlert) -> bool:
        """
        Insert an active alert unless its obligation already has one.

        Returns:
            True if the alert was inserted
        """

    @abstractmethod
    async def resolve(self, alert_id: str, at: datetime) -> None:
        """Mark an alert resolved."""

    @abstractmethod
    async def list(self, entity_id: str, active_only: bool = True) -> List[ComplianceAlert]:
        """Alerts of an entity, newest first."""


# ========== Application Services ==========

class ComplianceService:
    """
    Service for obligations and per-entity compliance health.

    Coordinates between the scorer and data access.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        scorer: Optional[ComplianceRiskScorer] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._uow = uow
        self._scorer = scorer or ComplianceRiskScorer()
        self._clock = clock

    async def create_obligation(
        self,
        entity_id: str,
        title: str,
        category: str,
        due_date: date,
        priority: Priority = Priority.MEDIUM,
        penalty_risk: Decimal = Decimal("0"),
        obligation_id: Optional[str] = None,
    ) -> ComplianceObligation:
        """Track a new obligation (entity subscribed to a category)."""
        now = self._clock()
        obligation = ComplianceObligation(
            id=obligation_id or str(uuid.uuid4()),
            entity_id=entity_id,
            title=title,
            category=category,
            due_date=due_date,
            created_at=now,
            updated_at=now,
            priority=Priority(priority),
            penalty_risk=Decimal(penalty_risk),
        )
        await self._uow.obligations.add(obligation)
        await self._uow.commit()

        logger.info(
            "Compliance obligation created",
            extra={"obligation_id": obligation.id, "entity_id": entity_id, "category": category}
        )
        return obligation

    async def update_obligation(
        self,
        obligation_id: str,
        evidence_ref: Optional[str] = None,
        due_date: Optional[date] = None,
        status: Optional[ObligationStatus] = None,
        penalty_risk: Optional[Decimal] = None,
        priority: Optional[Priority] = None,
    ) -> ComplianceObligation:
        """
        Apply evidence, due-date extension or completion to an obligation.

        Completion archives the obligation; archived obligations are read-only.

        Raises:
            ResourceNotFoundException: Unknown obligation
            ValidationException: Change not allowed for the obligation
        """
        obligation = await self._uow.obligations.get(obligation_id)
        if obligation is None:
            raise ResourceNotFoundException("ComplianceObligation", obligation_id)

        now = self._clock()
        try:
            if evidence_ref is not None:
                obligation.submit_evidence(evidence_ref, now)
            if due_date is not None and due_date != obligation.due_date:
                obligation.extend_due_date(due_date, now)
            if penalty_risk is not None or priority is not None:
                if obligation.is_archived:
                    raise ValueError("archived obligations cannot change")
                if penalty_risk is not None:
                    if Decimal(penalty_risk) < 0:
                        raise ValueError("penalty_risk cannot be negative")
                    obligation.penalty_risk = Decimal(penalty_risk)
                if priority is not None:
                    obligation.priority = Priority(priority)
                obligation.updated_at = now
            if status is not None:
                status = ObligationStatus(status)
                if status == ObligationStatus.COMPLETED:
                    obligation.complete(now)
                elif obligation.is_archived:
                    raise ValueError("archived obligations cannot be reopened")
                else:
                    obligation.status = status
                    obligation.updated_at = now
        except ValueError as e:
            raise ValidationException(str(e), {"obligation_id": obligation_id}) from e

        await self._uow.obligations.update(obligation)
        await self._uow.commit()

        logger.info(
            "Compliance obligation updated",
            extra={"obligation_id": obligation_id, "status": obligation.status.value}
        )
        return obligation

    async def get_obligation(self, obligation_id: str) -> ComplianceObligation:
        obligation = await self._uow.obligations.get(obligation_id)
        if obligation is None:
            raise ResourceNotFoundException("ComplianceObligation", obligation_id)
        return obligation

    async def get_state(self, entity_id: str) -> ComplianceState:
        """
        Cached state for an entity.

        When nothing is cached yet the state is computed on the fly (and not
        stored); the cache is always safe to rebuild.
        """
        state = await self._uow.compliance_states.get(entity_id)
        if state is not None:
            return state
        return await self.compute(entity_id, self._clock())

    async def compute(self, entity_id: str, now: datetime) -> ComplianceState:
        obligations = await self._uow.obligations.list_for_entity(entity_id)
        return self._scorer.score(entity_id, obligations, now)

    async def list_alerts(self, entity_id: str, active_only: bool = True) -> List[ComplianceAlert]:
        return await self._uow.compliance_alerts.list(entity_id, active_only)

    async def recalculate(
        self,
        entity_id: str,
        now: Optional[datetime] = None,
    ) -> Tuple[ComplianceState, bool]:
        """
        Recompute and persist an entity's state.

        Returns:
            Tuple of (state, changed); only a changed state is written and
            appended to history. ``changed`` reflects the state alone, alert
            changes are committed either way.
        """
        now = now or self._clock()
        obligations = await self._uow.obligations.list_for_entity(entity_id)
        state = self._scorer.score(entity_id, obligations, now)
        previous = await self._uow.compliance_states.get(entity_id)

        active = await self._uow.compliance_alerts.list_active(entity_id)
        plan = plan_alerts(obligations, active, now, self._scorer.tz)
        await self._apply_alerts(entity_id, plan, now)

        if state.same_as(previous):
            if not plan.is_empty:
                await self._uow.commit()
            return state, False

        await self._uow.compliance_states.save(state)
        await self._uow.compliance_states.append_history(state)
        await self._uow.commit()

        logger.info(
            "Compliance state changed",
            extra={
                "entity_id": entity_id,
                "grade": state.grade.value,
                "health_score": state.health_score,
                "previous_grade": previous.grade.value if previous else None,
            }
        )
        return state, True

    async def history(self, entity_id: str, limit: int = 100) -> List[ComplianceState]:
        return await self._uow.compliance_states.history(entity_id, limit)

    async def _apply_alerts(self, entity_id: str, plan: AlertPlan, now: datetime) -> None:
        for alert in plan.resolve_alerts:
            await self._uow.compliance_alerts.resolve(alert.id, now)
        raised = 0
        for alert in plan.raise_alerts:
            if await self._uow.compliance_alerts.add(alert):
                raised += 1

        if not plan.is_empty:
            logger.info(
                "Compliance alerts updated",
                extra={"entity_id": entity_id, "raised": raised, "resolved": len(plan.resolve_alerts)}
            )
