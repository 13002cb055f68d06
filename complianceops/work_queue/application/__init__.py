"""
Work Queue Application Layer
============================
"""

from complianceops.work_queue.application.dto import (
    QueueEntryResponse,
    WorkQueueResponse,
    WorkQueueStatsResponse,
)
from complianceops.work_queue.application.services import WorkQueueService

__all__ = [
    "WorkQueueService",
    "QueueEntryResponse",
    "WorkQueueResponse",
    "WorkQueueStatsResponse",
]
