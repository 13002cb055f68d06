"""
SLA Controllers (API Routes)
=============================

FastAPI routes for SLA breach tracking, deadline exceptions and reporting.

Controllers are thin - they delegate to application services.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.infrastructure.database.unit_of_work import get_uow
from complianceops.shared.api.dependencies import get_business_calendar
from complianceops.sla.application import (
    BreachActionRequest,
    SlaBreachResponse,
    SlaBreachService,
    SlaExceptionCreate,
    SlaExceptionResponse,
    SlaExceptionService,
    SlaMetricsResponse,
    SlaReportingService,
    SlaSummaryResponse,
)
from complianceops.sla.domain import BusinessCalendar
from complianceops.sla.application.dto import BreachStatusStr

router = APIRouter(prefix="/sla", tags=["SLA"])


# ========== Example payloads for Swagger ==========

BREACH_RESPONSE_EXAMPLE = {
    "id": "6b1c2f0e-0f3a-4d0c-9a57-1f6f6c5b8e21",
    "work_item_id": "SR-2024-0042",
    "entity_id": "ENT-1001",
    "deadline": "2024-07-15T12:00:00Z",
    "detected_at": "2024-07-16T13:00:00Z",
    "hours_over": 25.0,
    "severity": "major",
    "breach_type": "overall_sla",
    "status": "open",
    "acknowledged_at": None,
    "resolved_at": None,
    "notes": None
}


# ========== Dependencies ==========

def get_breach_service(uow: IUnitOfWork = Depends(get_uow)) -> SlaBreachService:
    return SlaBreachService(uow)


def get_exception_service(uow: IUnitOfWork = Depends(get_uow)) -> SlaExceptionService:
    return SlaExceptionService(uow)


def get_reporting_service(
    uow: IUnitOfWork = Depends(get_uow),
    calendar: BusinessCalendar = Depends(get_business_calendar),
) -> SlaReportingService:
    return SlaReportingService(uow, calendar)


# ========== Route Handlers ==========

@router.get(
    "/breaches",
    response_model=List[SlaBreachResponse],
    summary="List SLA breaches",
    description="""
    List recorded SLA breaches, newest first.

    **Breach severity** (hours past the deadline):
    - `minor`: up to 24h
    - `major`: more than 24h
    - `critical`: more than 48h
    """,
    responses={
        200: {
            "description": "Breaches",
            "content": {"application/json": {"example": [BREACH_RESPONSE_EXAMPLE]}}
        }
    },
)
async def list_breaches(
    breach_status: Optional[BreachStatusStr] = Query(None, alias="status", description="Filter by lifecycle status"),
    work_item_id: Optional[str] = Query(None, description="Filter by work item"),
    limit: int = Query(100, ge=1, le=1000),
    service: SlaBreachService = Depends(get_breach_service),
):
    breaches = await service.list_breaches(breach_status, work_item_id, limit)
    return [SlaBreachResponse.from_entity(b) for b in breaches]


@router.get(
    "/breaches/{breach_id}",
    response_model=SlaBreachResponse,
    summary="Get an SLA breach",
    responses={404: {"description": "Breach not found"}},
)
async def get_breach(
    breach_id: str,
    service: SlaBreachService = Depends(get_breach_service),
):
    return SlaBreachResponse.from_entity(await service.get(breach_id))


@router.post(
    "/breaches/{breach_id}/acknowledge",
    response_model=SlaBreachResponse,
    summary="Acknowledge a breach",
    responses={409: {"description": "Breach is not open"}},
)
async def acknowledge_breach(
    breach_id: str,
    request: Optional[BreachActionRequest] = None,
    service: SlaBreachService = Depends(get_breach_service),
):
    return SlaBreachResponse.from_entity(await service.acknowledge(breach_id, request.notes if request else None))


@router.post(
    "/breaches/{breach_id}/investigate",
    response_model=SlaBreachResponse,
    summary="Start investigating a breach",
    responses={409: {"description": "Breach already resolved or under investigation"}},
)
async def investigate_breach(
    breach_id: str,
    request: Optional[BreachActionRequest] = None,
    service: SlaBreachService = Depends(get_breach_service),
):
    return SlaBreachResponse.from_entity(await service.investigate(breach_id, request.notes if request else None))


@router.post(
    "/breaches/{breach_id}/resolve",
    response_model=SlaBreachResponse,
    summary="Resolve a breach",
    responses={409: {"description": "Breach must be acknowledged or investigated first"}},
)
async def resolve_breach(
    breach_id: str,
    request: Optional[BreachActionRequest] = None,
    service: SlaBreachService = Depends(get_breach_service),
):
    return SlaBreachResponse.from_entity(await service.resolve(breach_id, request.notes if request else None))


@router.get(
    "/summary",
    response_model=SlaSummaryResponse,
    summary="SLA summary of open work items",
    description="Count of open work items per SLA bucket, evaluated now. Items on hold report `paused`.",
)
async def sla_summary(service: SlaReportingService = Depends(get_reporting_service)):
    return SlaSummaryResponse.from_summary(await service.summary())


@router.get(
    "/metrics",
    response_model=SlaMetricsResponse,
    summary="SLA compliance metrics",
    description="""
    SLA performance of work items completed in the window (default: the last 30 days).

    An item is breached when a breach was recorded for it or it completed after
    its deadline. `average_business_hours` counts working hours only.
    """,
    responses={422: {"description": "Window ends before it starts"}},
)
async def sla_metrics(
    since: Optional[datetime] = Query(None, alias="from", description="Window start (inclusive)"),
    until: Optional[datetime] = Query(None, alias="to", description="Window end (exclusive)"),
    service: SlaReportingService = Depends(get_reporting_service),
):
    return SlaMetricsResponse.from_metrics(await service.metrics(since, until))


@router.post(
    "/work-items/{work_item_id}/exceptions",
    response_model=SlaExceptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Grant an SLA exception",
    description="Extend a work item's SLA deadline by `extension_hours` and keep an audit record of the grant.",
    responses={
        404: {"description": "Work item not found"},
        422: {"description": "Work item is finished or has no SLA deadline"},
    },
)
async def grant_exception(
    work_item_id: str,
    request: SlaExceptionCreate,
    service: SlaExceptionService = Depends(get_exception_service),
):
    exception = await service.grant(work_item_id, request.extension_hours, request.reason, request.granted_by)
    return SlaExceptionResponse.from_entity(exception)


@router.get(
    "/work-items/{work_item_id}/exceptions",
    response_model=List[SlaExceptionResponse],
    summary="List SLA exceptions of a work item",
    responses={404: {"description": "Work item not found"}},
)
async def list_exceptions(
    work_item_id: str,
    service: SlaExceptionService = Depends(get_exception_service),
):
    return [SlaExceptionResponse.from_entity(e) for e in await service.list_exceptions(work_item_id)]


# Export router for inclusion in main app
sla_router = router
