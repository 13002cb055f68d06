"""
Workflow Application Services
=============================

Application services orchestrate the state machine and the service request
repository.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence

from complianceops.config import Priority
from complianceops.core import ResourceNotFoundException, StaleTransition
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.shared.infrastructure.logging import get_logger
from complianceops.workflow.domain import (
    ActivityEntry,
    ServiceRequest,
    ServiceRequestStateMachine,
    ServiceRequestStatus,
    StatusChangedEvent,
    StatusHistoryEntry,
)

logger = get_logger(__name__)

StatusChangeListener = Callable[[StatusChangedEvent], Awaitable[None]]

# (service_key, priority, created_at) -> SLA deadline, or None without a policy
DeadlinePolicy = Callable[[str, Priority, datetime], Optional[datetime]]


# ========== Repository Interfaces (Dependency Inversion) ==========

class IServiceRequestRepository(ABC):
    """Interface for service request data access."""

    @abstractmethod
    async def get(self, request_id: str) -> Optional[ServiceRequest]:
        """Get a request with its full status history."""

    @abstractmethod
    async def add(self, request: ServiceRequest) -> None:
        """Persist a new request and its initial history."""

    @abstractmethod
    async def save_transition(
        self,
        request: ServiceRequest,
        expected_status: ServiceRequestStatus,
        entry: StatusHistoryEntry,
    ) -> None:
        """
        Persist a status change only if the stored status is still ``expected_status``.

        Raises:
            StaleTransition: If the stored status changed in the meantime
        """

    @abstractmethod
    async def assign(self, request_id: str, assignee: str, at: datetime) -> None:
        """Set the assignee of a request."""

    @abstractmethod
    async def set_sla_deadline(self, request_id: str, deadline: datetime, at: datetime) -> None:
        """Replace the SLA deadline of a request."""

    @abstractmethod
    async def list_open(self) -> List[ServiceRequest]:
        """All non-terminal requests (history not loaded)."""

    @abstractmethod
    async def list_completed(self, since: datetime, until: datetime) -> List[ServiceRequest]:
        """Requests that reached ``completed`` within [since, until) (history not loaded)."""


class IActivityLogRepository(ABC):
    """Append-only activity log of work items."""

    @abstractmethod
    async def add(self, entry: ActivityEntry) -> None:
        """Append an entry."""

    @abstractmethod
    async def list(
        self,
        work_item_id: str,
        client_visible_only: bool = False,
        limit: int = 100,
    ) -> List[ActivityEntry]:
        """Entries of one work item, newest first."""


# ========== Application Services ==========

class ServiceRequestService:
    """
    Service request lifecycle operations.

    Every status change goes through the state machine; listeners are
    notified only after the change has been committed. With a deadline
    policy, requests opened without an explicit deadline get one from it.
    """

    def __init__(
        self,
        uow: IUnitOfWork,
        state_machine: Optional[ServiceRequestStateMachine] = None,
        listeners: Sequence[StatusChangeListener] = (),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        deadline_policy: Optional[DeadlinePolicy] = None,
    ):
        self._uow = uow
        self._machine = state_machine or ServiceRequestStateMachine()
        self._listeners = list(listeners)
        self._clock = clock
        self._deadline_policy = deadline_policy

    async def create(
        self,
        entity_id: str,
        service_key: str,
        priority: Priority,
        actor_id: str,
        sla_deadline: Optional[datetime] = None,
        assigned_to: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> ServiceRequest:
        """Create a request in ``draft`` with its opening history entry."""
        now = self._clock()
        if sla_deadline is None and self._deadline_policy is not None:
            sla_deadline = self._deadline_policy(service_key, Priority(priority), now)
        request = ServiceRequest(
            id=request_id or str(uuid.uuid4()),
            entity_id=entity_id,
            service_key=service_key,
            priority=Priority(priority),
            created_at=now,
            updated_at=now,
            sla_deadline=sla_deadline,
            assigned_to=assigned_to,
        )
        request.history = (
            StatusHistoryEntry(
                from_status=None,
                to_status=request.status,
                actor_id=actor_id,
                changed_at=now,
                note="created",
            ),
        )

        await self._uow.service_requests.add(request)
        await self._uow.commit()

        logger.info(
            "Service request created",
            extra={
                "service_request_id": request.id,
                "entity_id": entity_id,
                "service_key": service_key,
                "sla_deadline": request.sla_deadline.isoformat() if request.sla_deadline else None,
            }
        )
        return request

    async def get(self, request_id: str) -> ServiceRequest:
        request = await self._uow.service_requests.get(request_id)
        if request is None:
            raise ResourceNotFoundException("ServiceRequest", request_id)
        return request

    async def transition(
        self,
        request_id: str,
        requested: ServiceRequestStatus,
        actor_id: str,
        expected_status: Optional[ServiceRequestStatus] = None,
        note: Optional[str] = None,
        actor_role: Optional[str] = None,
    ) -> ServiceRequest:
        """
        Apply a status transition with optimistic concurrency.

        Args:
            request_id: Service request ID
            requested: Target status
            actor_id: Who performs the change
            expected_status: Status the caller last saw; mismatch is rejected
            note: Optional audit note
            actor_role: Role of the actor, for role-guarded edges

        Returns:
            The updated ServiceRequest

        Raises:
            ResourceNotFoundException: Unknown request
            StaleTransition: Stored status differs from ``expected_status``
            IllegalTransition: ``requested`` is not adjacent to the current status
            TransitionNotPermitted: ``actor_role`` may not take this edge
        """
        request = await self.get(request_id)
        previous = request.status

        if expected_status is not None and ServiceRequestStatus(expected_status) != previous:
            raise StaleTransition(request_id, expected_status, previous)

        entry = self._machine.transition(
            request, requested, actor_id, note, at=self._clock(), actor_role=actor_role
        )
        await self._uow.service_requests.save_transition(request, previous, entry)
        await self._uow.commit()

        logger.info(
            "Service request transitioned",
            extra={
                "service_request_id": request_id,
                "from_status": previous.value,
                "to_status": request.status.value,
                "actor_id": actor_id,
                "actor_role": actor_role,
            }
        )

        event = StatusChangedEvent(
            service_request_id=request.id,
            entity_id=request.entity_id,
            from_status=previous,
            to_status=request.status,
            actor_id=actor_id,
            occurred_at=entry.changed_at,
        )
        await self._publish(event)
        return request

    async def allowed_transitions(self, request_id: str) -> tuple:
        """Return (request, allowed statuses, steps to completion)."""
        request = await self.get(request_id)
        allowed = sorted(self._machine.allowed_next(request), key=lambda s: s.value)
        steps = self._machine.steps_to_completion(request.status, request.resume_status)
        return request, allowed, steps

    async def activity(
        self,
        request_id: str,
        client_visible_only: bool = False,
        limit: int = 100,
    ) -> List[ActivityEntry]:
        """Activity log of a request, newest first."""
        await self.get(request_id)
        return await self._uow.activities.list(request_id, client_visible_only, limit)

    async def _publish(self, event: StatusChangedEvent) -> None:
        # The transition is already committed; a failing listener must not undo it.
        for listener in self._listeners:
            try:
                await listener(event)
            except Exception as e:
                logger.error(
                    "Status change listener failed",
                    extra={"service_request_id": event.service_request_id, "error": str(e)}
                )
