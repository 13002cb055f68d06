"""Tests for the service request application service."""

import asyncio

import pytest

from datetime import timedelta

from complianceops.config import ActivityType, Priority
from complianceops.core import IllegalTransition, ResourceNotFoundException, StaleTransition, TransitionNotPermitted
from complianceops.workflow.application import ServiceRequestService
from complianceops.workflow.domain import ActivityEntry, ServiceRequestStateMachine, ServiceRequestStatus as S

from tests.conftest import NOW, make_request


def _create(service, **kwargs):
    return asyncio.run(service.create("entity-1", "gst_filing", Priority.HIGH, "ops.exec.1", **kwargs))


class TestServiceRequestService:
    def test_create_starts_in_draft_with_history(self, uow):
        request = _create(ServiceRequestService(uow, clock=lambda: NOW))

        assert request.status == S.DRAFT
        assert len(request.history) == 1
        assert request.history[0].from_status is None
        assert request.history[0].to_status == S.DRAFT

    def test_transition_persists_and_notifies(self, store, uow):
        events = []

        async def listener(event):
            events.append(event)

        service = ServiceRequestService(uow, listeners=[listener], clock=lambda: NOW)
        request = _create(service)

        updated = asyncio.run(service.transition(request.id, S.INITIATED, "ops.exec.1"))

        assert updated.status == S.INITIATED
        assert store.service_requests[request.id].status == S.INITIATED
        assert len(store.service_requests[request.id].history) == 2
        assert events[0].from_status == S.DRAFT
        assert events[0].to_status == S.INITIATED

    def test_illegal_transition_is_not_persisted(self, store, uow):
        service = ServiceRequestService(uow, clock=lambda: NOW)
        request = _create(service)

        with pytest.raises(IllegalTransition):
            asyncio.run(service.transition(request.id, S.DELIVERED, "ops.exec.1"))

        assert store.service_requests[request.id].status == S.DRAFT

    def test_stale_expected_status(self, store, uow):
        service = ServiceRequestService(uow, clock=lambda: NOW)
        request = _create(service)
        asyncio.run(service.transition(request.id, S.INITIATED, "ops.exec.1"))

        with pytest.raises(StaleTransition) as exc_info:
            asyncio.run(service.transition(request.id, S.CANCELLED, "ops.exec.2", expected_status=S.DRAFT))

        assert exc_info.value.actual == "initiated"
        assert store.service_requests[request.id].status == S.INITIATED

    def test_failing_listener_does_not_undo_transition(self, store, uow):
        async def broken(event):
            raise RuntimeError("listener down")

        service = ServiceRequestService(uow, listeners=[broken], clock=lambda: NOW)
        request = _create(service)

        asyncio.run(service.transition(request.id, S.INITIATED, "ops.exec.1"))
        assert store.service_requests[request.id].status == S.INITIATED

    def test_allowed_transitions(self, uow):
        service = ServiceRequestService(uow, clock=lambda: NOW)
        request = _create(service)

        _, allowed, steps = asyncio.run(service.allowed_transitions(request.id))

        assert S.INITIATED in allowed
        assert S.DELIVERED not in allowed
        assert steps is not None and steps > 0

    def test_unknown_request(self, uow):
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(ServiceRequestService(uow).transition("missing", S.INITIATED, "ops.exec.1"))

    def test_actor_role_reaches_the_guard(self, store, uow):
        store.service_requests["req-qc"] = make_request("req-qc", status=S.QC_REVIEW)
        service = ServiceRequestService(uow, clock=lambda: NOW)

        with pytest.raises(TransitionNotPermitted):
            asyncio.run(service.transition("req-qc", S.QC_APPROVED, "ops.exec.1", actor_role="ops_executive"))
        assert store.service_requests["req-qc"].status == S.QC_REVIEW

        updated = asyncio.run(service.transition("req-qc", S.QC_APPROVED, "ops.mgr.1", actor_role="ops_manager"))
        assert updated.status == S.QC_APPROVED

    def test_strict_guard_needs_a_role(self, store, uow):
        store.service_requests["req-qc"] = make_request("req-qc", status=S.QC_REVIEW)
        service = ServiceRequestService(
            uow, state_machine=ServiceRequestStateMachine(require_actor_role=True), clock=lambda: NOW
        )

        with pytest.raises(TransitionNotPermitted):
            asyncio.run(service.transition("req-qc", S.QC_APPROVED, "ops.exec.1"))

    def test_activity_log_and_client_feed(self, store, uow):
        service = ServiceRequestService(uow, clock=lambda: NOW)
        request = _create(service)
        store.activities.extend([
            ActivityEntry(request.id, ActivityType.ESCALATION, "tier 1", NOW - timedelta(hours=2)),
            ActivityEntry(request.id, ActivityType.SLA_BREACH, "missed", NOW - timedelta(hours=1),
                          client_visible=True, client_message="Sorry for the delay"),
            ActivityEntry("other", ActivityType.ESCALATION, "elsewhere", NOW),
        ])

        log = asyncio.run(service.activity(request.id))
        feed = asyncio.run(service.activity(request.id, client_visible_only=True))

        assert [e.description for e in log] == ["missed", "tier 1"]
        assert [e.client_text for e in feed] == ["Sorry for the delay"]
        assert len(asyncio.run(service.activity(request.id, limit=1))) == 1
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(service.activity("missing"))
