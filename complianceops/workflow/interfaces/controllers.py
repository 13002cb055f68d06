"""
Workflow Controllers (API Routes)
=================================

FastAPI routes for service requests and the workflow graph.

Controllers are thin - they delegate to application services. Domain
errors (illegal or stale transitions, unknown IDs) are translated to HTTP
responses by the application exception handler.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from complianceops.config import settings
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.infrastructure.database.unit_of_work import get_uow
from complianceops.shared.api.dependencies import get_deadline_calculator, get_scheduler
from complianceops.workflow.application import (
    ActivityEntryResponse,
    AllowedTransitionsResponse,
    ClientActivityResponse,
    ServiceRequestCreate,
    ServiceRequestResponse,
    ServiceRequestService,
    TransitionRequest,
    WorkflowGraphResponse,
)
from complianceops.workflow.domain import ServiceRequestStateMachine

router = APIRouter(prefix="/service-requests", tags=["Service Requests"])
graph_router = APIRouter(prefix="/workflow", tags=["Workflow"])


# ========== Example payloads for Swagger ==========

TRANSITION_CONFLICT_EXAMPLE = {
    "error": "IllegalTransition",
    "detail": "Transition draft -> delivered is not allowed",
    "details": {
        "from_status": "draft",
        "to_status": "delivered",
        "allowed": ["cancelled", "escalated", "initiated", "sla_breached"]
    },
    "correlation_id": "3f0f7a8e-6c1e-4c43-9d4c-8f5f0a1f2b3c"
}


# ========== Dependencies ==========

def get_service_request_service(
    uow: IUnitOfWork = Depends(get_uow),
    scheduler=Depends(get_scheduler),
    calculator=Depends(get_deadline_calculator),
) -> ServiceRequestService:
    """Service request service; committed transitions re-evaluate the item."""
    listeners = [scheduler.notify_status_changed] if scheduler is not None else []
    return ServiceRequestService(
        uow,
        state_machine=ServiceRequestStateMachine(require_actor_role=settings.require_actor_role),
        listeners=listeners,
        deadline_policy=calculator.deadline_for if calculator is not None else None,
    )


# ========== Route Handlers ==========

@router.post(
    "",
    response_model=ServiceRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a service request",
    description="""
    Create a service request in `draft` with its opening history entry.

    Without `sla_deadline` the deadline comes from the service's SLA policy
    in the ops config, scaled by priority and counted in business hours.
    """,
)
async def create_service_request(
    request: ServiceRequestCreate,
    service: ServiceRequestService = Depends(get_service_request_service),
):
    created = await service.create(
        entity_id=request.entity_id,
        service_key=request.service_key,
        priority=request.priority,
        actor_id=request.actor_id,
        sla_deadline=request.sla_deadline,
        assigned_to=request.assigned_to,
        request_id=request.id,
    )
    return ServiceRequestResponse.from_entity(created)


@router.get(
    "/{request_id}",
    response_model=ServiceRequestResponse,
    summary="Get a service request with its status history",
    responses={404: {"description": "Service request not found"}},
)
async def get_service_request(
    request_id: str,
    service: ServiceRequestService = Depends(get_service_request_service),
):
    return ServiceRequestResponse.from_entity(await service.get(request_id))


@router.get(
    "/{request_id}/allowed-transitions",
    response_model=AllowedTransitionsResponse,
    summary="List statuses reachable in one step",
)
async def get_allowed_transitions(
    request_id: str,
    service: ServiceRequestService = Depends(get_service_request_service),
):
    request, allowed, steps = await service.allowed_transitions(request_id)
    return AllowedTransitionsResponse(
        service_request_id=request.id,
        status=request.status.value,
        allowed=[s.value for s in allowed],
        steps_to_completion=steps,
    )


@router.post(
    "/{request_id}/transitions",
    response_model=ServiceRequestResponse,
    summary="Change a service request's status",
    description="""
    Apply a status transition.

    Only transitions in the workflow adjacency table are accepted. Pass
    `expected_status` to reject the change when someone else moved the
    request first.

    **Errors**:
    - `409`: transition not allowed, or `expected_status` is stale
    - `403`: `actor_role` may not take a role-guarded transition
      (`qc_review -> qc_approved` needs a QC role, ops_manager or admin)
    - `404`: unknown service request
    """,
    responses={
        409: {
            "description": "Illegal or stale transition",
            "content": {"application/json": {"example": TRANSITION_CONFLICT_EXAMPLE}}
        },
        403: {"description": "Actor role may not take this transition"},
        404: {"description": "Service request not found"},
    },
)
async def transition_service_request(
    request_id: str,
    request: TransitionRequest,
    service: ServiceRequestService = Depends(get_service_request_service),
):
    updated = await service.transition(
        request_id,
        request.requested_status,
        request.actor_id,
        expected_status=request.expected_status,
        note=request.note,
        actor_role=request.actor_role,
    )
    return ServiceRequestResponse.from_entity(updated)


@router.get(
    "/{request_id}/activity",
    response_model=List[ActivityEntryResponse],
    summary="Activity log of a service request",
    description="Escalations, reassignments, SLA events and client notifications, newest first.",
    responses={404: {"description": "Service request not found"}},
)
async def get_activity(
    request_id: str,
    limit: int = Query(100, ge=1, le=1000),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    entries = await service.activity(request_id, limit=limit)
    return [ActivityEntryResponse.from_entity(e) for e in entries]


@router.get(
    "/{request_id}/client-feed",
    response_model=List[ClientActivityResponse],
    summary="Client-visible activity feed",
    description="Only entries marked client-visible, worded for the client.",
    responses={404: {"description": "Service request not found"}},
)
async def get_client_feed(
    request_id: str,
    limit: int = Query(50, ge=1, le=500),
    service: ServiceRequestService = Depends(get_service_request_service),
):
    entries = await service.activity(request_id, client_visible_only=True, limit=limit)
    return [ClientActivityResponse.from_entity(e) for e in entries]

@graph_router.get(
    "/graph",
    response_model=WorkflowGraphResponse,
    summary="Workflow graph",
    description="Nodes (statuses with their phase) and edges derived from the adjacency table.",
)
async def get_workflow_graph(
    phase: Optional[str] = None,
):
    graph = ServiceRequestStateMachine.workflow_graph()
    if phase:
        nodes = [n for n in graph["nodes"] if n["phase"] == phase]
        keep = {n["status"] for n in nodes}
        graph = {
            "nodes": nodes,
            "edges": [e for e in graph["edges"] if e["from"] in keep or e["to"] in keep],
            "overlays": graph["overlays"],
        }
    return WorkflowGraphResponse(**graph)


# Export routers for inclusion in main app
service_request_router = router
workflow_router = graph_router
