"""Tests for work queue ordering, filters and statistics."""

import asyncio
from datetime import timedelta

from complianceops.config import Priority, SLAStatus
from complianceops.work_queue.application import WorkQueueService
from complianceops.work_queue.domain import QueueFilters, WorkQueuePrioritizer
from complianceops.workflow.domain import ServiceRequestStatus as S

from tests.conftest import NOW, make_request


def _queue_ids(items, filters=None):
    return [entry.item.id for entry in WorkQueuePrioritizer().order(items, NOW, filters)]


class TestWorkQueuePrioritizer:
    def test_sla_bucket_dominates_priority(self):
        items = [
            make_request("on-track-urgent", priority=Priority.URGENT, sla_deadline=NOW + timedelta(days=5)),
            make_request("breached-low", priority=Priority.LOW, sla_deadline=NOW - timedelta(hours=1)),
            make_request("critical-medium", sla_deadline=NOW + timedelta(hours=2)),
            make_request("at-risk-high", priority=Priority.HIGH, sla_deadline=NOW + timedelta(hours=12)),
        ]
        assert _queue_ids(items) == ["breached-low", "critical-medium", "at-risk-high", "on-track-urgent"]

    def test_items_without_sla_come_after_on_track(self):
        items = [
            make_request("no-sla-urgent", priority=Priority.URGENT),
            make_request("on-track-low", priority=Priority.LOW, sla_deadline=NOW + timedelta(days=3)),
        ]
        assert _queue_ids(items) == ["on-track-low", "no-sla-urgent"]

    def test_ties_break_on_priority_then_deadline_then_id(self):
        items = [
            make_request("c", sla_deadline=NOW + timedelta(days=4)),
            make_request("b", sla_deadline=NOW + timedelta(days=3)),
            make_request("a", sla_deadline=NOW + timedelta(days=3)),
            make_request("d", priority=Priority.HIGH, sla_deadline=NOW + timedelta(days=9)),
        ]
        assert _queue_ids(items) == ["d", "a", "b", "c"]

    def test_paused_items_follow_running_slas(self):
        held = make_request("held-urgent", status=S.ON_HOLD, priority=Priority.URGENT,
                            sla_deadline=NOW + timedelta(hours=2))
        held.sla_paused_at = NOW - timedelta(hours=6)
        items = [
            held,
            make_request("on-track-low", priority=Priority.LOW, sla_deadline=NOW + timedelta(days=3)),
            make_request("no-sla"),
        ]

        entries = WorkQueuePrioritizer().order(items, NOW)

        assert [e.item.id for e in entries] == ["on-track-low", "held-urgent", "no-sla"]
        assert entries[1].sla_status == SLAStatus.PAUSED
        assert entries[1].hours_remaining == 8.0

    def test_finished_items_are_excluded(self):
        items = [
            make_request("done", status=S.COMPLETED, sla_deadline=NOW - timedelta(hours=3)),
            make_request("dropped", status=S.CANCELLED),
            make_request("open"),
        ]
        assert _queue_ids(items) == ["open"]

    def test_filters(self):
        items = [
            make_request("mine", assigned_to="ops.exec.1", sla_deadline=NOW - timedelta(hours=1)),
            make_request("theirs", assigned_to="ops.exec.2", sla_deadline=NOW - timedelta(hours=1)),
            make_request("mine-later", assigned_to="ops.exec.1"),
        ]
        assert _queue_ids(items, QueueFilters(assigned_to="ops.exec.1")) == ["mine", "mine-later"]
        assert _queue_ids(items, QueueFilters(sla_status=SLAStatus.NO_SLA)) == ["mine-later"]

    def test_stats(self):
        items = [
            make_request("a", priority=Priority.URGENT, sla_deadline=NOW - timedelta(hours=1)),
            make_request("b", assigned_to="ops.exec.1"),
            make_request("c", status=S.COMPLETED),
        ]
        stats = WorkQueuePrioritizer().stats(items, NOW)

        assert stats["total"] == 2
        assert stats["by_sla_status"]["breached"] == 1
        assert stats["by_sla_status"]["no_sla"] == 1
        assert stats["by_priority"]["urgent"] == 1
        assert stats["unassigned"] == 1


class TestWorkQueueService:
    def test_lists_open_items_in_order(self, uow):
        for item in (
            make_request("later", sla_deadline=NOW + timedelta(days=2)),
            make_request("sooner", sla_deadline=NOW + timedelta(hours=1)),
            make_request("closed", status=S.COMPLETED),
        ):
            asyncio.run(uow.service_requests.add(item))

        service = WorkQueueService(uow, clock=lambda: NOW)

        entries = asyncio.run(service.list_queue())
        assert [e.item.id for e in entries] == ["sooner", "later"]
        assert entries[0].sla_status == SLAStatus.CRITICAL
        assert [e.item.id for e in asyncio.run(service.list_queue(limit=1))] == ["sooner"]
