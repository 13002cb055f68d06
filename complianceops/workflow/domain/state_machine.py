"""
Service Request State Machine
=============================

Enforces legal status transitions for service requests.

The adjacency table in ``value_objects.TRANSITIONS`` is the only source of
truth; allowed moves, the presentation graph and the remaining-steps
estimate are all derived from it.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional

from complianceops.core import IllegalTransition, TransitionNotPermitted
from complianceops.workflow.domain.entities import ServiceRequest, StatusHistoryEntry
from complianceops.workflow.domain.value_objects import (
    ServiceRequestStatus,
    Phase,
    PHASE_OF,
    TRANSITIONS,
    TERMINAL_STATUSES,
    OVERLAY_STATUSES,
    ROLE_GUARDS,
)


class ServiceRequestStateMachine:
    """
    Validates and applies status transitions.

    Stateless apart from the tables it reads; a single instance can be shared.

    Edges listed in ROLE_GUARDS also check the acting role. A transition
    without a role passes the guard unless ``require_actor_role`` is set.
    """

    def __init__(self, require_actor_role: bool = False):
        self.require_actor_role = require_actor_role

    def allowed_next(self, request: ServiceRequest) -> FrozenSet[ServiceRequestStatus]:
        """Statuses the request may move to from where it is now."""
        current = request.status

        if current in OVERLAY_STATUSES:
            allowed = {ServiceRequestStatus.CANCELLED} | (OVERLAY_STATUSES - {current})
            if request.resume_status is not None:
                allowed.add(request.resume_status)
            return frozenset(allowed)

        allowed = set(TRANSITIONS[current])
        if current not in TERMINAL_STATUSES:
            allowed |= OVERLAY_STATUSES
        return frozenset(allowed)

    def can_transition(self, request: ServiceRequest, requested: ServiceRequestStatus) -> bool:
        return requested in self.allowed_next(request)

    def transition(
        self,
        request: ServiceRequest,
        requested: ServiceRequestStatus,
        actor_id: str,
        note: Optional[str] = None,
        at: Optional[datetime] = None,
        actor_role: Optional[str] = None,
    ) -> StatusHistoryEntry:
        """
        Move the request to ``requested`` and append a history entry.

        Entering on_hold stops the SLA clock; leaving it restarts the clock
        and pushes the deadline out by the time spent on hold.

        Args:
            request: Service request to mutate
            requested: Target status
            actor_id: Who performed the change
            note: Optional free-text note for the audit trail
            at: Transition instant (defaults to now, UTC)
            actor_role: Role of the actor, checked on role-guarded edges

        Returns:
            The appended StatusHistoryEntry

        Raises:
            IllegalTransition: If ``requested`` is not adjacent to the current status
            TransitionNotPermitted: If the edge is role-guarded and the role fails it
        """
        requested = ServiceRequestStatus(requested)
        current = request.status
        allowed = self.allowed_next(request)

        if requested not in allowed:
            raise IllegalTransition(current, requested, allowed)

        self._check_role(current, requested, actor_role)

        at = at or datetime.now(timezone.utc)

        if requested in OVERLAY_STATUSES:
            # Switching between overlays keeps the original resume point.
            if current not in OVERLAY_STATUSES:
                request.resume_status = current
        else:
            request.resume_status = None

        if requested == ServiceRequestStatus.ON_HOLD:
            request.pause_sla(at)
        elif current == ServiceRequestStatus.ON_HOLD:
            request.resume_sla(at)

        entry = StatusHistoryEntry(
            from_status=current,
            to_status=requested,
            actor_id=actor_id,
            changed_at=at,
            note=note,
        )

        request.status = requested
        request.status_changed_at = at
        request.updated_at = at
        request.history = request.history + (entry,)

        return entry

    def resolve_overlay(
        self,
        request: ServiceRequest,
        actor_id: str,
        note: Optional[str] = None,
        at: Optional[datetime] = None,
    ) -> StatusHistoryEntry:
        """Return a request in an overlay status to the status it held before."""
        if request.status not in OVERLAY_STATUSES or request.resume_status is None:
            raise IllegalTransition(
                request.status,
                request.resume_status or request.status,
                self.allowed_next(request),
            )
        return self.transition(request, request.resume_status, actor_id, note, at)

    def _check_role(
        self,
        current: ServiceRequestStatus,
        requested: ServiceRequestStatus,
        actor_role: Optional[str],
    ) -> None:
        guard = ROLE_GUARDS.get((current, requested))
        if guard is None:
            return
        if actor_role is None:
            if self.require_actor_role:
                raise TransitionNotPermitted(current, requested, None)
            return
        if not guard(actor_role):
            raise TransitionNotPermitted(current, requested, actor_role)

    # ========== Derived views ==========

    @staticmethod
    def phase_of(status: ServiceRequestStatus) -> Phase:
        return PHASE_OF[ServiceRequestStatus(status)]

    @staticmethod
    def workflow_graph() -> Dict[str, List[dict]]:
        """Nodes and edges for presentation layers."""
        nodes = [
            {
                "status": status.value,
                "phase": PHASE_OF[status].value,
                "terminal": status in TERMINAL_STATUSES,
                "overlay": status in OVERLAY_STATUSES,
            }
            for status in ServiceRequestStatus
        ]

        edges = []
        for source, targets in TRANSITIONS.items():
            for target in sorted(targets, key=lambda s: s.value):
                edges.append({"from": source.value, "to": target.value, "kind": "transition"})

        for overlay in sorted(OVERLAY_STATUSES, key=lambda s: s.value):
            for other in sorted(OVERLAY_STATUSES - {overlay}, key=lambda s: s.value):
                edges.append({"from": overlay.value, "to": other.value, "kind": "overlay"})
            edges.append({
                "from": overlay.value,
                "to": ServiceRequestStatus.CANCELLED.value,
                "kind": "transition",
            })

        overlays = [
            {
                "status": overlay.value,
                "entered_from": sorted(
                    s.value for s in TRANSITIONS if s not in TERMINAL_STATUSES
                ),
                "resumes_to": "previous_status",
            }
            for overlay in sorted(OVERLAY_STATUSES, key=lambda s: s.value)
        ]

        return {"nodes": nodes, "edges": edges, "overlays": overlays}

    @staticmethod
    def steps_to_completion(
        status: ServiceRequestStatus,
        resume_status: Optional[ServiceRequestStatus] = None,
    ) -> Optional[int]:
        """
        Fewest transitions from ``status`` to ``completed``.

        Returns None when completion is unreachable (cancelled, rejected, or
        an overlay whose resume status is unknown).
        """
        status = ServiceRequestStatus(status)

        if status in OVERLAY_STATUSES:
            if resume_status is None:
                return None
            remaining = ServiceRequestStateMachine.steps_to_completion(resume_status)
            return None if remaining is None else remaining + 1

        target = ServiceRequestStatus.COMPLETED
        seen = {status}
        queue = deque([(status, 0)])

        while queue:
            current, depth = queue.popleft()
            if current == target:
                return depth
            for nxt in TRANSITIONS.get(current, ()):
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append((nxt, depth + 1))

        return None
