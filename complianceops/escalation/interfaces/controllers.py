"""
Escalation Controllers (API Routes)
===================================

FastAPI routes for escalation rule configuration and execution history.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.escalation.application import (
    EscalationExecutionResponse,
    EscalationRuleCreate,
    EscalationRuleResponse,
    EscalationRuleService,
)
from complianceops.infrastructure.database.unit_of_work import get_uow

router = APIRouter(prefix="/escalation", tags=["Escalation"])


# ========== Example payloads for Swagger ==========

RULE_CREATE_EXAMPLE = {
    "rule_key": "gst_filing_sla",
    "name": "GST filing SLA escalation",
    "trigger": {"type": "sla_based"},
    "service_key": "gst_filing",
    "tiers": [
        {"tier": 1, "threshold_percent": 50, "severity": "warning", "notify_roles": ["ops_executive"]},
        {
            "tier": 2,
            "threshold_percent": 80,
            "severity": "critical",
            "notify_roles": ["ops_lead"],
            "actions": ["notify", "reassign"]
        }
    ],
    "auto_reassign": True,
    "reassign_to_role": "ops_lead"
}


# ========== Dependencies ==========

def get_rule_service(uow: IUnitOfWork = Depends(get_uow)) -> EscalationRuleService:
    return EscalationRuleService(uow)


# ========== Route Handlers ==========

@router.post(
    "/rules",
    response_model=EscalationRuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an escalation rule",
    description="""
    Create an escalation rule. The rule is validated before it is stored:

    - at least one tier, numbered sequentially from 1
    - strictly ascending, positive thresholds
    - notifying tiers must list roles
    - `auto_reassign` requires `reassign_to_role`

    **Errors**: `422` lists every structural problem found.
    """,
    openapi_extra={
        "requestBody": {"content": {"application/json": {"example": RULE_CREATE_EXAMPLE}}}
    },
)
async def create_rule(
    request: EscalationRuleCreate,
    service: EscalationRuleService = Depends(get_rule_service),
):
    return EscalationRuleResponse.from_entity(await service.create(request))


@router.put(
    "/rules/{rule_id}",
    response_model=EscalationRuleResponse,
    summary="Replace an escalation rule",
    responses={404: {"description": "Rule not found"}, 422: {"description": "Malformed rule"}},
)
async def update_rule(
    rule_id: str,
    request: EscalationRuleCreate,
    service: EscalationRuleService = Depends(get_rule_service),
):
    return EscalationRuleResponse.from_entity(await service.update(rule_id, request))


@router.get(
    "/rules",
    response_model=List[EscalationRuleResponse],
    summary="List escalation rules",
)
async def list_rules(
    active_only: bool = Query(False, description="Only active rules"),
    service: EscalationRuleService = Depends(get_rule_service),
):
    return [EscalationRuleResponse.from_entity(r) for r in await service.list_rules(active_only)]


@router.get(
    "/rules/{rule_id}",
    response_model=EscalationRuleResponse,
    summary="Get an escalation rule",
    responses={404: {"description": "Rule not found"}},
)
async def get_rule(
    rule_id: str,
    service: EscalationRuleService = Depends(get_rule_service),
):
    return EscalationRuleResponse.from_entity(await service.get(rule_id))


@router.delete(
    "/rules/{rule_id}",
    response_model=EscalationRuleResponse,
    summary="Deactivate an escalation rule",
    description="Rules are deactivated rather than removed so their execution history stays intact.",
    responses={404: {"description": "Rule not found"}},
)
async def deactivate_rule(
    rule_id: str,
    service: EscalationRuleService = Depends(get_rule_service),
):
    return EscalationRuleResponse.from_entity(await service.deactivate(rule_id))


@router.get(
    "/executions",
    response_model=List[EscalationExecutionResponse],
    summary="Escalation execution history",
)
async def list_executions(
    work_item_id: Optional[str] = Query(None, description="Filter by work item"),
    limit: int = Query(100, ge=1, le=1000),
    service: EscalationRuleService = Depends(get_rule_service),
):
    executions = await service.list_executions(work_item_id, limit)
    return [EscalationExecutionResponse.from_entity(e) for e in executions]


# Export router for inclusion in main app
escalation_router = router
