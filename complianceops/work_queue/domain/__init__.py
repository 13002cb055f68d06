"""
Work Queue Domain Layer
=======================

Ordering of open work items for operator queues.
"""

from complianceops.work_queue.domain.prioritizer import (
    WorkQueuePrioritizer,
    QueueFilters,
    QueueEntry,
)

__all__ = ["WorkQueuePrioritizer", "QueueFilters", "QueueEntry"]
