"""Tests for SLA evaluation, breaches, exception grants and reporting."""

import asyncio
from datetime import timedelta

import pytest

from complianceops.config import ActivityType, BreachSeverity, BreachStatus, SLAStatus
from complianceops.core import IllegalBreachTransition, ResourceNotFoundException, ValidationException
from complianceops.sla.application import SlaBreachService, SlaExceptionService, SlaReportingService
from complianceops.sla.application.services import DELAY_APOLOGY
from complianceops.sla.domain import SlaBreach, breach_severity, evaluate_sla, hours_remaining
from complianceops.workflow.domain import ServiceRequestStatus

from tests.conftest import NOW, make_request


class TestEvaluateSla:
    @pytest.mark.parametrize(
        "hours_left, expected",
        [
            (-0.01, SLAStatus.BREACHED),
            (0, SLAStatus.CRITICAL),
            (4.0, SLAStatus.CRITICAL),
            (4.01, SLAStatus.AT_RISK),
            (24.0, SLAStatus.AT_RISK),
            (24.5, SLAStatus.ON_TRACK),
        ],
    )
    def test_buckets(self, hours_left, expected):
        deadline = NOW + timedelta(hours=hours_left)
        assert evaluate_sla(deadline, False, NOW) == expected

    def test_no_deadline(self):
        assert evaluate_sla(None, False, NOW) == SLAStatus.NO_SLA

    def test_completed_wins_over_breach(self):
        assert evaluate_sla(NOW - timedelta(days=3), True, NOW) == SLAStatus.COMPLETED

    def test_paused_clock(self):
        paused_at = NOW - timedelta(hours=10)
        assert evaluate_sla(NOW + timedelta(hours=2), False, NOW, paused_at) == SLAStatus.PAUSED
        assert hours_remaining(NOW + timedelta(hours=2), NOW, paused_at) == 12.0

    def test_pause_after_the_deadline_stays_breached(self):
        assert evaluate_sla(NOW - timedelta(hours=5), False, NOW, NOW - timedelta(hours=1)) == SLAStatus.BREACHED


class TestBreachSeverity:
    @pytest.mark.parametrize(
        "hours_over, severity",
        [(1, BreachSeverity.MINOR), (24, BreachSeverity.MINOR), (25, BreachSeverity.MAJOR),
         (48, BreachSeverity.MAJOR), (49, BreachSeverity.CRITICAL)],
    )
    def test_thresholds(self, hours_over, severity):
        assert breach_severity(hours_over) == severity


class TestSlaBreachService:
    def test_records_one_breach_per_deadline(self, store, uow):
        item = make_request(sla_deadline=NOW - timedelta(hours=30))
        service = SlaBreachService(uow, clock=lambda: NOW)

        first = asyncio.run(service.record_breach(item, NOW))
        second = asyncio.run(service.record_breach(item, NOW + timedelta(hours=1)))

        assert first is not None
        assert first.severity == BreachSeverity.MAJOR
        assert first.hours_over == 30.0
        assert first.status == BreachStatus.OPEN
        assert second is None
        assert len(store.breaches) == 1

    def test_moved_deadline_is_a_new_breach(self, store, uow):
        service = SlaBreachService(uow, clock=lambda: NOW)
        asyncio.run(service.record_breach(make_request(sla_deadline=NOW - timedelta(hours=2)), NOW))
        asyncio.run(service.record_breach(make_request(sla_deadline=NOW - timedelta(hours=1)), NOW))
        assert len(store.breaches) == 2

    def test_nothing_recorded_before_deadline_or_for_finished_items(self, store, uow):
        service = SlaBreachService(uow, clock=lambda: NOW)

        assert asyncio.run(service.record_breach(make_request(sla_deadline=NOW + timedelta(hours=1)), NOW)) is None
        finished = make_request(status=ServiceRequestStatus.COMPLETED, sla_deadline=NOW - timedelta(hours=5))
        assert asyncio.run(service.record_breach(finished, NOW)) is None
        assert store.breaches == {}

    def test_lifecycle(self, store, uow):
        service = SlaBreachService(uow, clock=lambda: NOW)
        breach = asyncio.run(service.record_breach(make_request(sla_deadline=NOW - timedelta(hours=2)), NOW))

        acknowledged = asyncio.run(service.acknowledge(breach.id, notes="looking"))
        assert acknowledged.status == BreachStatus.ACKNOWLEDGED
        assert acknowledged.acknowledged_at == NOW

        investigating = asyncio.run(service.investigate(breach.id))
        assert investigating.status == BreachStatus.INVESTIGATING

        resolved = asyncio.run(service.resolve(breach.id, notes="client docs arrived"))
        assert resolved.status == BreachStatus.RESOLVED
        assert resolved.resolved_at == NOW
        assert resolved.notes == "looking\nclient docs arrived"
        assert store.breaches[breach.id].status == BreachStatus.RESOLVED

    def test_open_breach_cannot_jump_to_resolved(self, uow):
        service = SlaBreachService(uow, clock=lambda: NOW)
        breach = asyncio.run(service.record_breach(make_request(sla_deadline=NOW - timedelta(hours=2)), NOW))

        with pytest.raises(IllegalBreachTransition):
            asyncio.run(service.resolve(breach.id))

    def test_resolved_breach_is_final(self, uow):
        service = SlaBreachService(uow, clock=lambda: NOW)
        breach = asyncio.run(service.record_breach(make_request(sla_deadline=NOW - timedelta(hours=2)), NOW))
        asyncio.run(service.acknowledge(breach.id))
        asyncio.run(service.resolve(breach.id))

        with pytest.raises(IllegalBreachTransition):
            asyncio.run(service.acknowledge(breach.id))

    def test_unknown_breach(self, uow):
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(SlaBreachService(uow).get("missing"))

    def test_list_filters_by_status(self, uow):
        service = SlaBreachService(uow, clock=lambda: NOW)
        first = asyncio.run(service.record_breach(
            make_request("req-1", sla_deadline=NOW - timedelta(hours=2)), NOW
        ))
        asyncio.run(service.record_breach(make_request("req-2", sla_deadline=NOW - timedelta(hours=3)), NOW))
        asyncio.run(service.acknowledge(first.id))

        open_breaches = asyncio.run(service.list_breaches(status=BreachStatus.OPEN))
        assert [b.work_item_id for b in open_breaches] == ["req-2"]
        assert len(asyncio.run(service.list_breaches(work_item_id="req-1"))) == 1

    def test_breach_is_logged_for_the_client(self, store, uow):
        item = make_request(sla_deadline=NOW - timedelta(hours=2))
        breach = asyncio.run(SlaBreachService(uow).record_breach(item, NOW))

        entry = store.activities[-1]
        assert entry.activity_type == ActivityType.SLA_BREACH
        assert entry.work_item_id == item.id
        assert entry.new_value["breach_id"] == breach.id
        assert entry.client_visible is True
        assert entry.client_text == DELAY_APOLOGY

    def test_paused_item_is_judged_at_its_pause(self, store, uow):
        item = make_request(status=ServiceRequestStatus.ON_HOLD, sla_deadline=NOW - timedelta(hours=2))
        item.sla_paused_at = NOW - timedelta(hours=3)

        assert asyncio.run(SlaBreachService(uow).record_breach(item, NOW)) is None
        assert store.breaches == {}
        assert store.activities == []


def _grant(uow, work_item_id="req-1", hours=24.0):
    service = SlaExceptionService(uow, clock=lambda: NOW)
    return asyncio.run(service.grant(work_item_id, hours, "client travelling", "ops.lead.1"))


class TestSlaExceptionService:
    def test_grant_moves_deadline_and_keeps_audit(self, store, uow):
        deadline = NOW + timedelta(hours=2)
        store.service_requests["req-1"] = make_request(sla_deadline=deadline)
        commits = store.commits

        granted = _grant(uow)

        assert granted.previous_deadline == deadline
        assert granted.new_deadline == deadline + timedelta(hours=24)
        assert granted.granted_by == "ops.lead.1"
        assert store.service_requests["req-1"].sla_deadline == granted.new_deadline
        assert store.sla_exceptions == [granted]
        assert store.commits == commits + 1

        entry = store.activities[-1]
        assert entry.activity_type == ActivityType.SLA_EXCEPTION
        assert entry.actor_id == "ops.lead.1"
        assert entry.previous_value == {"sla_deadline": deadline.isoformat()}
        assert entry.client_visible is True

    def test_breached_overlay_is_left_alone(self, store, uow):
        store.service_requests["req-1"] = make_request(
            status=ServiceRequestStatus.SLA_BREACHED,
            resume_status=ServiceRequestStatus.IN_PROGRESS,
            sla_deadline=NOW - timedelta(hours=1),
        )

        _grant(uow, hours=48)

        stored = store.service_requests["req-1"]
        assert stored.status == ServiceRequestStatus.SLA_BREACHED
        assert stored.sla_deadline == NOW + timedelta(hours=47)

    def test_grants_are_listed_newest_first(self, store, uow):
        store.service_requests["req-1"] = make_request(sla_deadline=NOW)
        service = SlaExceptionService(uow, clock=lambda: NOW)
        asyncio.run(service.grant("req-1", 4, "first", "ops.lead.1"))
        service = SlaExceptionService(uow, clock=lambda: NOW + timedelta(hours=1))
        asyncio.run(service.grant("req-1", 8, "second", "ops.lead.1"))

        grants = asyncio.run(service.list_exceptions("req-1"))

        assert [g.reason for g in grants] == ["second", "first"]
        assert grants[0].previous_deadline == NOW + timedelta(hours=4)
        assert store.service_requests["req-1"].sla_deadline == NOW + timedelta(hours=12)

    def test_rejected_grants(self, store, uow):
        store.service_requests["done"] = make_request(
            "done", status=ServiceRequestStatus.COMPLETED, sla_deadline=NOW
        )
        store.service_requests["no-sla"] = make_request("no-sla")
        store.service_requests["req-1"] = make_request(sla_deadline=NOW)

        with pytest.raises(ResourceNotFoundException):
            _grant(uow, "missing")
        with pytest.raises(ValidationException):
            _grant(uow, "done")
        with pytest.raises(ValidationException):
            _grant(uow, "no-sla")
        with pytest.raises(ValidationException):
            _grant(uow, "req-1", hours=0)

        assert store.sla_exceptions == []
        assert store.service_requests["req-1"].sla_deadline == NOW


def _completed(request_id, service_key, created_hours_ago, finished_hours_ago, deadline=None):
    return make_request(
        request_id,
        status=ServiceRequestStatus.COMPLETED,
        service_key=service_key,
        created_at=NOW - timedelta(hours=created_hours_ago),
        status_changed_at=NOW - timedelta(hours=finished_hours_ago),
        sla_deadline=deadline,
    )


class TestSlaReporting:
    def test_summary_counts_open_items_per_bucket(self, store, uow):
        on_hold = make_request("held", status=ServiceRequestStatus.ON_HOLD, sla_deadline=NOW + timedelta(hours=1))
        on_hold.sla_paused_at = NOW - timedelta(hours=1)
        for item in (
            make_request("late", sla_deadline=NOW - timedelta(hours=1)),
            make_request("fine", sla_deadline=NOW + timedelta(hours=48)),
            make_request("no-sla"),
            on_hold,
            make_request("done", status=ServiceRequestStatus.COMPLETED, sla_deadline=NOW - timedelta(days=1)),
        ):
            store.service_requests[item.id] = item

        summary = asyncio.run(SlaReportingService(uow).summary(NOW))

        assert summary.total == 4
        assert summary.buckets == {
            "breached": 1,
            "critical": 0,
            "at_risk": 0,
            "on_track": 1,
            "paused": 1,
            "no_sla": 1,
        }

    def test_metrics_over_completed_items(self, store, uow):
        for item in (
            _completed("a", "gst_filing", 30, 5, deadline=NOW - timedelta(hours=2)),
            _completed("b", "gst_filing", 40, 4, deadline=NOW - timedelta(hours=10)),
            _completed("d", "roc_filing", 20, 3, deadline=NOW + timedelta(hours=5)),
            _completed("old", "roc_filing", 24 * 50, 24 * 40, deadline=NOW - timedelta(days=45)),
        ):
            store.service_requests[item.id] = item
        # d finished on time against a deadline that was extended after it breached
        store.breaches["br-1"] = SlaBreach(
            id="br-1",
            work_item_id="d",
            entity_id="entity-1",
            deadline=NOW - timedelta(hours=10),
            detected_at=NOW - timedelta(hours=9),
            hours_over=1.0,
            severity=BreachSeverity.MINOR,
        )

        metrics = asyncio.run(SlaReportingService(uow, clock=lambda: NOW).metrics())

        assert metrics.total == 3
        assert metrics.breached == 2
        assert metrics.on_time == 1
        assert metrics.compliance_percentage == 33.3
        assert metrics.average_completion_hours == 26.0
        assert metrics.average_business_hours is not None
        assert metrics.by_service["gst_filing"].compliance_rate == 50.0
        assert metrics.by_service["roc_filing"].total == 1
        assert metrics.by_service["roc_filing"].compliance_rate == 0.0
        assert metrics.breach_types == {"overall_sla": 1}

    def test_empty_window_is_fully_compliant(self, uow):
        metrics = asyncio.run(SlaReportingService(uow, clock=lambda: NOW).metrics())

        assert metrics.total == 0
        assert metrics.compliance_percentage == 100.0
        assert metrics.average_completion_hours is None
        assert metrics.since == NOW - timedelta(days=30)

    def test_window_must_be_ordered(self, uow):
        with pytest.raises(ValidationException):
            asyncio.run(SlaReportingService(uow).metrics(NOW, NOW - timedelta(days=1)))
