"""
Compliance Infrastructure Repositories
======================================

Concrete implementations of the compliance repository interfaces using SQLAlchemy.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from complianceops.config import (
    ComplianceAlertSeverity, ComplianceAlertType, ComplianceGrade, DeadlineRisk,
    ObligationStatus, Priority,
)
from complianceops.core import ResourceNotFoundException
from complianceops.infrastructure.database import insert_ignoring_conflicts
from complianceops.compliance.application.services import (
    IComplianceAlertRepository,
    IComplianceStateRepository,
    IObligationRepository,
)
from complianceops.compliance.domain import (
    ComplianceAlert,
    ComplianceObligation,
    ComplianceState,
    NextDeadline,
)
from complianceops.compliance.infrastructure.models import (
    ComplianceAlertModel,
    ComplianceStateHistoryModel,
    ComplianceStateModel,
    ObligationModel,
)


class SQLAlchemyObligationRepository(IObligationRepository):
    """SQLAlchemy implementation of obligation repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: ObligationModel) -> ComplianceObligation:
        return ComplianceObligation(
            id=model.id,
            entity_id=model.entity_id,
            title=model.title,
            category=model.category,
            due_date=model.due_date,
            created_at=model.created_at,
            updated_at=model.updated_at,
            status=ObligationStatus(model.status),
            priority=Priority(model.priority),
            penalty_risk=Decimal(model.penalty_risk),
            evidence_ref=model.evidence_ref,
            evidence_submitted_at=model.evidence_submitted_at,
            archived_at=model.archived_at,
        )

    @staticmethod
    def _apply(model: ObligationModel, obligation: ComplianceObligation) -> None:
        model.entity_id = obligation.entity_id
        model.title = obligation.title
        model.category = obligation.category
        model.due_date = obligation.due_date
        model.status = obligation.status.value
        model.priority = obligation.priority.value
        model.penalty_risk = obligation.penalty_risk
        model.evidence_ref = obligation.evidence_ref
        model.evidence_submitted_at = obligation.evidence_submitted_at
        model.archived_at = obligation.archived_at
        model.created_at = obligation.created_at
        model.updated_at = obligation.updated_at

    async def get(self, obligation_id: str) -> Optional[ComplianceObligation]:
        model = await self._session.get(ObligationModel, obligation_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def add(self, obligation: ComplianceObligation) -> None:
        model = ObligationModel(id=obligation.id)
        self._apply(model, obligation)
        self._session.add(model)
        await self._session.flush()

    async def update(self, obligation: ComplianceObligation) -> None:
        model = await self._session.get(ObligationModel, obligation.id)
        if model is None:
            raise ResourceNotFoundException("ComplianceObligation", obligation.id)
        self._apply(model, obligation)
        await self._session.flush()

    async def list_for_entity(self, entity_id: str) -> List[ComplianceObligation]:
        stmt = (
            select(ObligationModel)
            .where(ObligationModel.entity_id == entity_id)
            .order_by(ObligationModel.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def list_active_entity_ids(self) -> List[str]:
        stmt = (
            select(ObligationModel.entity_id)
            .where(ObligationModel.archived_at.is_(None))
            .distinct()
            .order_by(ObligationModel.entity_id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


def _state_values(state: ComplianceState) -> dict:
    nxt = state.next_deadline
    return {
        "grade": state.grade.value,
        "health_score": state.health_score,
        "risk_score": state.risk_score,
        "penalty_exposure": state.penalty_exposure,
        "overdue_count": state.overdue_count,
        "upcoming_count": state.upcoming_count,
        "total_count": state.total_count,
        "completed_count": state.completed_count,
        "next_obligation_id": nxt.obligation_id if nxt else None,
        "next_title": nxt.title if nxt else None,
        "next_due_date": nxt.due_date if nxt else None,
        "next_priority": nxt.priority.value if nxt else None,
        "next_risk": nxt.risk.value if nxt and nxt.risk else None,
        "calculated_at": state.calculated_at,
    }


def _state_from_row(row) -> ComplianceState:
    next_deadline = None
    if row.next_obligation_id is not None:
        next_deadline = NextDeadline(
            obligation_id=row.next_obligation_id,
            title=row.next_title,
            due_date=row.next_due_date,
            priority=Priority(row.next_priority),
            risk=DeadlineRisk(row.next_risk) if row.next_risk else None,
        )
    return ComplianceState(
        entity_id=row.entity_id,
        grade=ComplianceGrade(row.grade),
        health_score=row.health_score,
        risk_score=row.risk_score,
        penalty_exposure=Decimal(row.penalty_exposure),
        overdue_count=row.overdue_count,
        upcoming_count=row.upcoming_count,
        total_count=row.total_count,
        completed_count=row.completed_count,
        next_deadline=next_deadline,
        calculated_at=row.calculated_at,
    )


class SQLAlchemyComplianceStateRepository(IComplianceStateRepository):
    """SQLAlchemy implementation of the compliance state cache."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, entity_id: str) -> Optional[ComplianceState]:
        model = await self._session.get(ComplianceStateModel, entity_id, populate_existing=True)
        return _state_from_row(model) if model else None

    async def save(self, state: ComplianceState) -> None:
        model = await self._session.get(ComplianceStateModel, state.entity_id)
        if model is None:
            model = ComplianceStateModel(entity_id=state.entity_id)
            self._session.add(model)
        for key, value in _state_values(state).items():
            setattr(model, key, value)
        await self._session.flush()

    async def append_history(self, state: ComplianceState) -> None:
        self._session.add(ComplianceStateHistoryModel(entity_id=state.entity_id, **_state_values(state)))
        await self._session.flush()

    async def history(self, entity_id: str, limit: int = 100) -> List[ComplianceState]:
        stmt = (
            select(ComplianceStateHistoryModel)
            .where(ComplianceStateHistoryModel.entity_id == entity_id)
            .order_by(ComplianceStateHistoryModel.id.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [_state_from_row(row) for row in result.scalars().all()]


class SQLAlchemyComplianceAlertRepository(IComplianceAlertRepository):
    """
    SQLAlchemy implementation of the compliance alert repository.

    The unique ``active_obligation_id`` column keeps two overlapping
    recalculations from raising the same alert twice.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: ComplianceAlertModel) -> ComplianceAlert:
        return ComplianceAlert(
            id=model.id,
            entity_id=model.entity_id,
            obligation_id=model.obligation_id,
            alert_type=ComplianceAlertType(model.alert_type),
            severity=ComplianceAlertSeverity(model.severity),
            title=model.title,
            message=model.message,
            triggered_at=model.triggered_at,
            due_date=model.due_date,
            is_active=model.is_active,
            resolved_at=model.resolved_at,
        )

    async def list_active(self, entity_id: str) -> List[ComplianceAlert]:
        return await self.list(entity_id, active_only=True)

    async def add(self, alert: ComplianceAlert) -> bool:
        stmt = insert_ignoring_conflicts(self._session, ComplianceAlertModel, {
            "id": alert.id,
            "entity_id": alert.entity_id,
            "obligation_id": alert.obligation_id,
            "active_obligation_id": alert.obligation_id if alert.is_active else None,
            "alert_type": alert.alert_type.value,
            "severity": alert.severity.value,
            "title": alert.title,
            "message": alert.message,
            "due_date": alert.due_date,
            "triggered_at": alert.triggered_at,
            "is_active": alert.is_active,
            "resolved_at": alert.resolved_at,
        })
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def resolve(self, alert_id: str, at: datetime) -> None:
        result = await self._session.execute(
            update(ComplianceAlertModel)
            .where(ComplianceAlertModel.id == alert_id, ComplianceAlertModel.is_active.is_(True))
            .values(is_active=False, resolved_at=at, active_obligation_id=None)
        )
        if result.rowcount == 0:
            raise ResourceNotFoundException("ComplianceAlert", alert_id)

    async def list(self, entity_id: str, active_only: bool = True) -> List[ComplianceAlert]:
        stmt = select(ComplianceAlertModel).where(ComplianceAlertModel.entity_id == entity_id)
        if active_only:
            stmt = stmt.where(ComplianceAlertModel.is_active.is_(True))
        stmt = stmt.order_by(ComplianceAlertModel.triggered_at.desc(), ComplianceAlertModel.id)
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]
