"""
Workflow Infrastructure Repositories
====================================

Concrete implementations of the service request and activity log
repositories using SQLAlchemy.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from complianceops.config import ActivityType, Priority
from complianceops.core import ResourceNotFoundException, StaleTransition
from complianceops.workflow.application.services import (
    IActivityLogRepository,
    IServiceRequestRepository,
)
from complianceops.workflow.domain import (
    ActivityEntry,
    ServiceRequest,
    ServiceRequestStatus,
    StatusHistoryEntry,
    TERMINAL_STATUSES,
)
from complianceops.workflow.infrastructure.models import (
    ActivityLogModel,
    ServiceRequestModel,
    StatusHistoryModel,
)


def _to_entity(model: ServiceRequestModel, history=()) -> ServiceRequest:
    return ServiceRequest(
        id=model.id,
        entity_id=model.entity_id,
        service_key=model.service_key,
        priority=Priority(model.priority),
        created_at=model.created_at,
        updated_at=model.updated_at,
        status=ServiceRequestStatus(model.status),
        status_changed_at=model.status_changed_at,
        sla_deadline=model.sla_deadline,
        assigned_to=model.assigned_to,
        resume_status=ServiceRequestStatus(model.resume_status) if model.resume_status else None,
        sla_paused_at=model.sla_paused_at,
        sla_paused_seconds=model.sla_paused_seconds or 0.0,
        history=tuple(history),
    )


def _history_row(request_id: str, entry: StatusHistoryEntry) -> StatusHistoryModel:
    return StatusHistoryModel(
        service_request_id=request_id,
        from_status=entry.from_status.value if entry.from_status else None,
        to_status=entry.to_status.value,
        actor_id=entry.actor_id,
        changed_at=entry.changed_at,
        note=entry.note,
    )


class SQLAlchemyServiceRequestRepository(IServiceRequestRepository):
    """
    SQLAlchemy implementation of service request repository.

    Status updates are conditional on the previously read status, which is
    what makes concurrent transitions on one request fail fast.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, request_id: str) -> Optional[ServiceRequest]:
        model = await self._session.get(ServiceRequestModel, request_id, populate_existing=True)
        if model is None:
            return None

        stmt = (
            select(StatusHistoryModel)
            .where(StatusHistoryModel.service_request_id == request_id)
            .order_by(StatusHistoryModel.id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        history = [
            StatusHistoryEntry(
                from_status=ServiceRequestStatus(row.from_status) if row.from_status else None,
                to_status=ServiceRequestStatus(row.to_status),
                actor_id=row.actor_id,
                changed_at=row.changed_at,
                note=row.note,
            )
            for row in rows
        ]
        return _to_entity(model, history)

    async def add(self, request: ServiceRequest) -> None:
        self._session.add(ServiceRequestModel(
            id=request.id,
            entity_id=request.entity_id,
            service_key=request.service_key,
            status=request.status.value,
            resume_status=request.resume_status.value if request.resume_status else None,
            priority=request.priority.value,
            assigned_to=request.assigned_to,
            sla_deadline=request.sla_deadline,
            sla_paused_at=request.sla_paused_at,
            sla_paused_seconds=request.sla_paused_seconds,
            created_at=request.created_at,
            updated_at=request.updated_at,
            status_changed_at=request.status_changed_at,
        ))
        # History rows reference the request; flush the parent first.
        await self._session.flush()
        for entry in request.history:
            self._session.add(_history_row(request.id, entry))
        await self._session.flush()

    async def save_transition(
        self,
        request: ServiceRequest,
        expected_status: ServiceRequestStatus,
        entry: StatusHistoryEntry,
    ) -> None:
        stmt = (
            update(ServiceRequestModel)
            .where(
                ServiceRequestModel.id == request.id,
                ServiceRequestModel.status == expected_status.value,
            )
            .values(
                status=request.status.value,
                resume_status=request.resume_status.value if request.resume_status else None,
                status_changed_at=request.status_changed_at,
                updated_at=request.updated_at,
                sla_deadline=request.sla_deadline,
                sla_paused_at=request.sla_paused_at,
                sla_paused_seconds=request.sla_paused_seconds,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)

        if result.rowcount == 0:
            current = await self._session.scalar(
                select(ServiceRequestModel.status).where(ServiceRequestModel.id == request.id)
            )
            if current is None:
                raise ResourceNotFoundException("ServiceRequest", request.id)
            raise StaleTransition(request.id, expected_status, current)

        self._session.add(_history_row(request.id, entry))
        await self._session.flush()

    async def assign(self, request_id: str, assignee: str, at: datetime) -> None:
        stmt = (
            update(ServiceRequestModel)
            .where(ServiceRequestModel.id == request_id)
            .values(assigned_to=assignee, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise ResourceNotFoundException("ServiceRequest", request_id)

    async def set_sla_deadline(self, request_id: str, deadline: datetime, at: datetime) -> None:
        stmt = (
            update(ServiceRequestModel)
            .where(ServiceRequestModel.id == request_id)
            .values(sla_deadline=deadline, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            raise ResourceNotFoundException("ServiceRequest", request_id)

    async def list_open(self) -> List[ServiceRequest]:
        stmt = (
            select(ServiceRequestModel)
            .where(ServiceRequestModel.status.not_in([s.value for s in TERMINAL_STATUSES]))
            .order_by(ServiceRequestModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]

    async def list_completed(self, since: datetime, until: datetime) -> List[ServiceRequest]:
        stmt = (
            select(ServiceRequestModel)
            .where(
                ServiceRequestModel.status == ServiceRequestStatus.COMPLETED.value,
                ServiceRequestModel.status_changed_at >= since,
                ServiceRequestModel.status_changed_at < until,
            )
            .order_by(ServiceRequestModel.id)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return [_to_entity(model) for model in result.scalars().all()]


class SQLAlchemyActivityLogRepository(IActivityLogRepository):
    """SQLAlchemy implementation of the work item activity log."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def add(self, entry: ActivityEntry) -> None:
        self._session.add(ActivityLogModel(
            id=entry.id,
            work_item_id=entry.work_item_id,
            activity_type=entry.activity_type.value,
            description=entry.description,
            occurred_at=entry.occurred_at,
            actor_id=entry.actor_id,
            trigger_source=entry.trigger_source,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            client_visible=entry.client_visible,
            client_message=entry.client_message,
        ))
        await self._session.flush()

    async def list(
        self,
        work_item_id: str,
        client_visible_only: bool = False,
        limit: int = 100,
    ) -> List[ActivityEntry]:
        stmt = select(ActivityLogModel).where(ActivityLogModel.work_item_id == work_item_id)
        if client_visible_only:
            stmt = stmt.where(ActivityLogModel.client_visible.is_(True))
        stmt = stmt.order_by(ActivityLogModel.occurred_at.desc(), ActivityLogModel.id).limit(limit)

        result = await self._session.execute(stmt)
        return [
            ActivityEntry(
                id=row.id,
                work_item_id=row.work_item_id,
                activity_type=ActivityType(row.activity_type),
                description=row.description,
                occurred_at=row.occurred_at,
                actor_id=row.actor_id,
                trigger_source=row.trigger_source,
                previous_value=row.previous_value,
                new_value=row.new_value,
                client_visible=row.client_visible,
                client_message=row.client_message,
            )
            for row in result.scalars().all()
        ]
