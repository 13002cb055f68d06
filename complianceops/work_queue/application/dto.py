"""
Work Queue DTOs
===============
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from complianceops.work_queue.domain import QueueEntry


class QueueEntryResponse(BaseModel):
    id: str
    entity_id: str
    service_key: str
    status: str
    priority: str
    sla_status: str
    sla_deadline: Optional[datetime]
    hours_remaining: Optional[float]
    assigned_to: Optional[str]
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: QueueEntry) -> "QueueEntryResponse":
        item = entry.item
        return cls(
            id=item.id,
            entity_id=item.entity_id,
            service_key=item.service_key,
            status=item.status.value,
            priority=item.priority.value,
            sla_status=entry.sla_status.value,
            sla_deadline=item.sla_deadline,
            hours_remaining=round(entry.hours_remaining, 2) if entry.hours_remaining is not None else None,
            assigned_to=item.assigned_to,
            created_at=item.created_at,
        )


class WorkQueueResponse(BaseModel):
    items: List[QueueEntryResponse]
    total: int


class WorkQueueStatsResponse(BaseModel):
    total: int
    by_sla_status: Dict[str, int]
    by_priority: Dict[str, int]
    unassigned: int
