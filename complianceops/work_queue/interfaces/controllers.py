"""
Work Queue Controllers (API Routes)
===================================

Operator queue ordered by SLA urgency, then priority, then deadline.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from complianceops.config import Priority, SLAStatus
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.infrastructure.database.unit_of_work import get_uow
from complianceops.work_queue.application import (
    QueueEntryResponse,
    WorkQueueResponse,
    WorkQueueService,
    WorkQueueStatsResponse,
)
from complianceops.work_queue.domain import QueueFilters

router = APIRouter(prefix="/work-queue", tags=["Work Queue"])


def get_work_queue_service(uow: IUnitOfWork = Depends(get_uow)) -> WorkQueueService:
    return WorkQueueService(uow)


@router.get(
    "",
    response_model=WorkQueueResponse,
    summary="Prioritized work queue",
    description="""
    Open work items, most urgent first.

    **Order**: SLA bucket (`breached`, `critical`, `at_risk`, `on_track`,
    `no_sla`), then priority (`urgent` to `low`), then SLA deadline
    (missing last), then ID. Completed items are excluded.
    """,
)
async def get_work_queue(
    sla_status: Optional[SLAStatus] = Query(None, description="Filter by SLA bucket"),
    assigned_to: Optional[str] = Query(None, description="Filter by assignee"),
    priority: Optional[Priority] = Query(None, description="Filter by priority"),
    service_key: Optional[str] = Query(None, description="Filter by service key"),
    limit: Optional[int] = Query(None, ge=1, le=1000, description="Maximum entries"),
    service: WorkQueueService = Depends(get_work_queue_service),
):
    filters = QueueFilters(
        sla_status=sla_status,
        assigned_to=assigned_to,
        priority=priority,
        service_key=service_key,
    )
    entries = await service.list_queue(filters, limit)
    return WorkQueueResponse(
        items=[QueueEntryResponse.from_entry(e) for e in entries],
        total=len(entries),
    )


@router.get(
    "/stats",
    response_model=WorkQueueStatsResponse,
    summary="Work queue statistics",
)
async def get_work_queue_stats(
    service: WorkQueueService = Depends(get_work_queue_service),
):
    return WorkQueueStatsResponse(**await service.stats())


# Export router for inclusion in main app
work_queue_router = router
