"""
Work Queue Prioritizer
======================

Orders open work items for operator-facing queues.

Sort key, ascending: SLA bucket rank, priority rank, SLA deadline (missing
last), identifier. Completed items never appear in the queue. Items on hold
rank as paused, after every running SLA, with their remaining time frozen.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from complianceops.config import Priority, SLAStatus, PRIORITY_RANK, SLA_STATUS_RANK
from complianceops.sla.domain import evaluate_sla, hours_remaining
from complianceops.workflow.domain import ServiceRequest


@dataclass(frozen=True)
class QueueFilters:
    """Optional filters applied before ordering."""
    sla_status: Optional[SLAStatus] = None
    assigned_to: Optional[str] = None
    priority: Optional[Priority] = None
    service_key: Optional[str] = None


@dataclass(frozen=True)
class QueueEntry:
    """A work item together with its SLA bucket at evaluation time."""
    item: ServiceRequest
    sla_status: SLAStatus
    hours_remaining: Optional[float]


class WorkQueuePrioritizer:
    """Composite-key ordering over SLA buckets."""

    def classify(self, item: ServiceRequest, now: datetime) -> QueueEntry:
        sla_status = evaluate_sla(item.sla_deadline, item.is_terminal, now, item.sla_paused_at)
        remaining = None
        if item.sla_deadline is not None:
            remaining = hours_remaining(item.sla_deadline, now, item.sla_paused_at)
        return QueueEntry(item=item, sla_status=sla_status, hours_remaining=remaining)

    @staticmethod
    def sort_key(entry: QueueEntry):
        item = entry.item
        return (
            SLA_STATUS_RANK[entry.sla_status],
            PRIORITY_RANK[item.priority],
            item.sla_deadline is None,
            item.sla_deadline.timestamp() if item.sla_deadline is not None else 0.0,
            item.id,
        )

    def order(
        self,
        items: Iterable[ServiceRequest],
        now: datetime,
        filters: Optional[QueueFilters] = None,
    ) -> List[QueueEntry]:
        """
        Filter and order work items.

        Args:
            items: Candidate work items
            now: Evaluation instant
            filters: Optional queue filters

        Returns:
            Ordered queue entries, completed items excluded
        """
        filters = filters or QueueFilters()
        entries = []

        for item in items:
            entry = self.classify(item, now)
            if entry.sla_status == SLAStatus.COMPLETED or item.is_terminal:
                continue
            if not self._passes(entry, filters):
                continue
            entries.append(entry)

        return sorted(entries, key=self.sort_key)

    def stats(self, items: Iterable[ServiceRequest], now: datetime) -> Dict[str, object]:
        """Totals per SLA bucket and priority, plus unassigned count."""
        entries = self.order(items, now)
        by_sla = {status.value: 0 for status in SLA_STATUS_RANK}
        by_priority = {priority.value: 0 for priority in PRIORITY_RANK}
        unassigned = 0

        for entry in entries:
            by_sla[entry.sla_status.value] += 1
            by_priority[entry.item.priority.value] += 1
            if not entry.item.assigned_to:
                unassigned += 1

        return {
            "total": len(entries),
            "by_sla_status": by_sla,
            "by_priority": by_priority,
            "unassigned": unassigned,
        }

    @staticmethod
    def _passes(entry: QueueEntry, filters: QueueFilters) -> bool:
        item = entry.item
        if filters.sla_status is not None and entry.sla_status != filters.sla_status:
            return False
        if filters.assigned_to is not None and item.assigned_to != filters.assigned_to:
            return False
        if filters.priority is not None and item.priority != filters.priority:
            return False
        if filters.service_key is not None and item.service_key != filters.service_key:
            return False
        return True
