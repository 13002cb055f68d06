"""
Work Queue Application Service
==============================

Builds operator queues from open service requests.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.work_queue.domain import QueueEntry, QueueFilters, WorkQueuePrioritizer


class WorkQueueService:
    """Ordered queue and queue statistics over open work items."""

    def __init__(
        self,
        uow: IUnitOfWork,
        prioritizer: Optional[WorkQueuePrioritizer] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._uow = uow
        self._prioritizer = prioritizer or WorkQueuePrioritizer()
        self._clock = clock

    async def list_queue(
        self,
        filters: Optional[QueueFilters] = None,
        limit: Optional[int] = None,
    ) -> List[QueueEntry]:
        items = await self._uow.service_requests.list_open()
        entries = self._prioritizer.order(items, self._clock(), filters)
        return entries[:limit] if limit is not None else entries

    async def stats(self) -> Dict[str, object]:
        items = await self._uow.service_requests.list_open()
        return self._prioritizer.stats(items, self._clock())
