"""
SLA Infrastructure Repositories
=================================

Concrete implementations of the SLA repositories using SQLAlchemy.
"""

from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from complianceops.config import BreachSeverity, BreachStatus
from complianceops.core import ResourceNotFoundException
from complianceops.infrastructure.database import insert_ignoring_conflicts
from complianceops.sla.application.services import ISlaBreachRepository, ISlaExceptionRepository
from complianceops.sla.domain import SlaBreach, SlaException
from complianceops.sla.infrastructure.models import SlaBreachModel, SlaExceptionModel


class SQLAlchemySlaBreachRepository(ISlaBreachRepository):
    """
    SQLAlchemy implementation of SLA breach repository.

    Uniqueness of (work item, deadline) is enforced by the table, so two
    overlapping evaluations can never record the same breach twice.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: SlaBreachModel) -> SlaBreach:
        return SlaBreach(
            id=model.id,
            work_item_id=model.work_item_id,
            entity_id=model.entity_id,
            deadline=model.deadline,
            detected_at=model.detected_at,
            hours_over=model.hours_over,
            severity=BreachSeverity(model.severity),
            breach_type=model.breach_type,
            status=BreachStatus(model.status),
            acknowledged_at=model.acknowledged_at,
            resolved_at=model.resolved_at,
            notes=model.notes,
        )

    async def get(self, breach_id: str) -> Optional[SlaBreach]:
        model = await self._session.get(SlaBreachModel, breach_id, populate_existing=True)
        return self._to_entity(model) if model else None

    async def add_if_absent(self, breach: SlaBreach) -> bool:
        stmt = insert_ignoring_conflicts(self._session, SlaBreachModel, {
            "id": breach.id,
            "work_item_id": breach.work_item_id,
            "entity_id": breach.entity_id,
            "deadline": breach.deadline,
            "detected_at": breach.detected_at,
            "hours_over": breach.hours_over,
            "severity": breach.severity.value,
            "breach_type": breach.breach_type,
            "status": breach.status.value,
            "acknowledged_at": breach.acknowledged_at,
            "resolved_at": breach.resolved_at,
            "notes": breach.notes,
        })
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def update(self, breach: SlaBreach) -> None:
        model = await self._session.get(SlaBreachModel, breach.id)
        if model is None:
            raise ResourceNotFoundException("SlaBreach", breach.id)

        model.status = breach.status.value
        model.acknowledged_at = breach.acknowledged_at
        model.resolved_at = breach.resolved_at
        model.notes = breach.notes
        await self._session.flush()

    async def list(
        self,
        status: Optional[BreachStatus] = None,
        work_item_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SlaBreach]:
        stmt = select(SlaBreachModel)

        if status is not None:
            stmt = stmt.where(SlaBreachModel.status == BreachStatus(status).value)
        if work_item_id is not None:
            stmt = stmt.where(SlaBreachModel.work_item_id == work_item_id)

        stmt = stmt.order_by(SlaBreachModel.detected_at.desc(), SlaBreachModel.id).limit(limit)

        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]

    async def list_for_work_items(self, work_item_ids: Sequence[str]) -> List[SlaBreach]:
        if not work_item_ids:
            return []
        stmt = select(SlaBreachModel).where(SlaBreachModel.work_item_id.in_(list(work_item_ids)))
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]


class SQLAlchemySlaExceptionRepository(ISlaExceptionRepository):
    """SQLAlchemy implementation of the SLA exception repository."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _to_entity(model: SlaExceptionModel) -> SlaException:
        return SlaException(
            id=model.id,
            work_item_id=model.work_item_id,
            entity_id=model.entity_id,
            previous_deadline=model.previous_deadline,
            new_deadline=model.new_deadline,
            extension_hours=model.extension_hours,
            reason=model.reason,
            granted_by=model.granted_by,
            granted_at=model.granted_at,
        )

    async def add(self, exception: SlaException) -> None:
        self._session.add(SlaExceptionModel(
            id=exception.id,
            work_item_id=exception.work_item_id,
            entity_id=exception.entity_id,
            previous_deadline=exception.previous_deadline,
            new_deadline=exception.new_deadline,
            extension_hours=exception.extension_hours,
            reason=exception.reason,
            granted_by=exception.granted_by,
            granted_at=exception.granted_at,
        ))
        await self._session.flush()

    async def list(self, work_item_id: str) -> List[SlaException]:
        stmt = (
            select(SlaExceptionModel)
            .where(SlaExceptionModel.work_item_id == work_item_id)
            .order_by(SlaExceptionModel.granted_at.desc(), SlaExceptionModel.id)
        )
        result = await self._session.execute(stmt)
        return [self._to_entity(model) for model in result.scalars().all()]
