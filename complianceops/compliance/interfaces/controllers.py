"""
Compliance Controllers (API Routes)
===================================

FastAPI routes for obligations, per-entity compliance health and alerts.
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from complianceops.compliance.application import (
    ComplianceAlertResponse,
    ComplianceHistoryResponse,
    ComplianceService,
    ComplianceStateResponse,
    ObligationCreate,
    ObligationResponse,
    ObligationUpdate,
    RecalculationResponse,
)
from complianceops.compliance.domain import ComplianceRiskScorer
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.infrastructure.database.unit_of_work import get_uow
from complianceops.shared.api.dependencies import get_scheduler, get_scorer

router = APIRouter(prefix="/compliance", tags=["Compliance"])


# ========== Example payloads for Swagger ==========

COMPLIANCE_STATE_EXAMPLE = {
    "entity_id": "ENT-1001",
    "grade": "amber",
    "health_score": 60,
    "risk_score": 40,
    "penalty_exposure": "15000.00",
    "overdue_count": 1,
    "upcoming_count": 2,
    "total_count": 5,
    "completed_count": 2,
    "next_deadline": {
        "obligation_id": "OBL-7",
        "title": "GSTR-3B filing",
        "due_date": "2024-07-20",
        "priority": "high",
        "risk": "danger"
    },
    "calculated_at": "2024-07-18T06:00:00Z"
}


# ========== Dependencies ==========

def get_compliance_service(
    uow: IUnitOfWork = Depends(get_uow),
    scorer: ComplianceRiskScorer = Depends(get_scorer),
) -> ComplianceService:
    return ComplianceService(uow, scorer=scorer)


# ========== Route Handlers ==========

@router.post(
    "/obligations",
    response_model=ObligationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Track a compliance obligation",
)
async def create_obligation(
    request: ObligationCreate,
    service: ComplianceService = Depends(get_compliance_service),
    scheduler=Depends(get_scheduler),
):
    obligation = await service.create_obligation(
        entity_id=request.entity_id,
        title=request.title,
        category=request.category,
        due_date=request.due_date,
        priority=request.priority,
        penalty_risk=request.penalty_risk,
        obligation_id=request.id,
    )
    if scheduler is not None:
        scheduler.request_entity_recalculation(obligation.entity_id)
    return ObligationResponse.from_entity(obligation)


@router.patch(
    "/obligations/{obligation_id}",
    response_model=ObligationResponse,
    summary="Update an obligation",
    description="""
    Submit evidence, extend the due date, or complete an obligation.

    Completing an obligation archives it; archived obligations are read-only.
    """,
    responses={
        404: {"description": "Obligation not found"},
        422: {"description": "Change not allowed for this obligation"},
    },
)
async def update_obligation(
    obligation_id: str,
    request: ObligationUpdate,
    service: ComplianceService = Depends(get_compliance_service),
    scheduler=Depends(get_scheduler),
):
    obligation = await service.update_obligation(
        obligation_id,
        evidence_ref=request.evidence_ref,
        due_date=request.due_date,
        status=request.status,
        penalty_risk=request.penalty_risk,
        priority=request.priority,
    )
    if scheduler is not None:
        scheduler.request_entity_recalculation(obligation.entity_id)
    return ObligationResponse.from_entity(obligation)


@router.get(
    "/obligations/{obligation_id}",
    response_model=ObligationResponse,
    summary="Get an obligation",
    responses={404: {"description": "Obligation not found"}},
)
async def get_obligation(
    obligation_id: str,
    service: ComplianceService = Depends(get_compliance_service),
):
    return ObligationResponse.from_entity(await service.get_obligation(obligation_id))


@router.get(
    "/entities/{entity_id}/state",
    response_model=ComplianceStateResponse,
    summary="Get an entity's compliance state",
    responses={
        200: {
            "description": "Cached compliance state",
            "content": {"application/json": {"example": COMPLIANCE_STATE_EXAMPLE}}
        }
    },
)
async def get_compliance_state(
    entity_id: str,
    service: ComplianceService = Depends(get_compliance_service),
):
    return ComplianceStateResponse.from_state(await service.get_state(entity_id))


@router.post(
    "/entities/{entity_id}/recalculate",
    response_model=RecalculationResponse,
    summary="Recalculate an entity's compliance state now",
    description="Waits for any recalculation already running for the entity, then recalculates.",
)
async def recalculate_compliance_state(
    entity_id: str,
    service: ComplianceService = Depends(get_compliance_service),
    scheduler=Depends(get_scheduler),
):
    if scheduler is not None:
        result = await scheduler.recalculate_entity(entity_id, wait=True)
        state, changed = result.state, result.changed
    else:
        state, changed = await service.recalculate(entity_id)

    return RecalculationResponse(state=ComplianceStateResponse.from_state(state), changed=changed)


@router.get(
    "/entities/{entity_id}/history",
    response_model=ComplianceHistoryResponse,
    summary="Compliance state history (newest first)",
)
async def get_compliance_history(
    entity_id: str,
    limit: int = Query(100, ge=1, le=1000, description="Maximum snapshots"),
    service: ComplianceService = Depends(get_compliance_service),
):
    snapshots = await service.history(entity_id, limit)
    return ComplianceHistoryResponse(
        entity_id=entity_id,
        snapshots=[ComplianceStateResponse.from_state(s) for s in snapshots],
    )


@router.get(
    "/entities/{entity_id}/alerts",
    response_model=List[ComplianceAlertResponse],
    summary="Obligation alerts of an entity",
    description="""
    Alerts raised by recalculation, newest first.

    An obligation is alerted when it is overdue, or due within 7 days with
    `urgent` priority. Urgent obligations raise `critical` alerts, all others
    `warning`. An alert is resolved once its condition clears.
    """,
)
async def list_compliance_alerts(
    entity_id: str,
    active_only: bool = Query(True, description="Only alerts that are still active"),
    service: ComplianceService = Depends(get_compliance_service),
):
    return [ComplianceAlertResponse.from_entity(a) for a in await service.list_alerts(entity_id, active_only)]


# Export router for inclusion in main app
compliance_router = router
