"""Tests for the ops config, roster assignment and the notification webhook."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from complianceops.config import Priority
from complianceops.core import ConfigurationException, NotificationException
from complianceops.escalation.application import EscalationRuleService
from complianceops.escalation.infrastructure import (
    CircuitBreaker,
    CircuitState,
    OpsConfigManager,
    RosterAssignmentProvider,
    WebhookNotificationGateway,
)

from tests.conftest import NOW, make_request

REPO_CONFIG = Path(__file__).resolve().parent.parent / "ops_config.yaml"


def _write(path, text):
    path.write_text(text)
    return path


class TestOpsConfigManager:
    def test_bundled_config_is_valid(self):
        config = OpsConfigManager().load(REPO_CONFIG)

        assert {rule.rule_key for rule in config.escalation_rules} == {"universal_aging", "sla_breach_alert"}
        assert config.assignment_roster["ops_lead"] == ["ops.lead.1"]

    def test_bundled_rules_seed_cleanly(self, store, uow):
        config = OpsConfigManager().load(REPO_CONFIG)
        assert asyncio.run(EscalationRuleService(uow).seed(config.escalation_rules)) == 2
        assert len(store.rules) == 2

    def test_bundled_tier_overrides_reassign_role(self, store, uow):
        config = OpsConfigManager().load(REPO_CONFIG)
        asyncio.run(EscalationRuleService(uow).seed(config.escalation_rules))

        rule = next(r for r in store.rules.values() if r.rule_key == "sla_breach_alert")
        assert rule.reassign_to_role == "ops_lead"
        assert rule.tier(2).reassign_to_role == "admin"

    def test_bundled_sla_policies_build_a_calculator(self):
        config = OpsConfigManager().load(REPO_CONFIG)
        calculator = config.deadline_calculator(timezone.utc)

        assert calculator.policy_for("gst_return_filing").resolution_hours == 24
        assert calculator.policy_for("unlisted_service").resolution_hours == 48
        assert calculator.deadline_for("trademark_filing", Priority.MEDIUM, NOW) == NOW + timedelta(hours=7)
        # Sunday noon: urgent GST return filing gets 6 working hours on Monday
        assert calculator.deadline_for("gst_return_filing", Priority.URGENT, NOW) == datetime(
            2025, 6, 16, 15, 0, tzinfo=timezone.utc
        )

    def test_missing_policies_mean_no_deadlines(self, tmp_path):
        config = OpsConfigManager().load(tmp_path / "absent.yaml")
        assert config.deadline_calculator(timezone.utc).deadline_for("gst_filing", Priority.HIGH, NOW) is None

    def test_missing_file_gives_defaults(self, tmp_path):
        config = OpsConfigManager().load(tmp_path / "absent.yaml")
        assert config.escalation_rules == []
        assert config.assignment_roster == {}

    def test_invalid_file_is_rejected(self, tmp_path):
        path = _write(tmp_path / "ops.yaml", "escalation_rules:\n  - rule_key: x\n")
        with pytest.raises(ConfigurationException):
            OpsConfigManager().load(path)

    def test_failed_reload_keeps_previous_config(self, tmp_path):
        path = _write(tmp_path / "ops.yaml", "assignment_roster:\n  admin: [ops.admin.1]\n")
        manager = OpsConfigManager()
        manager.load(path)

        _write(path, "assignment_roster: [this is: not a mapping\n")
        assert manager.reload() is False
        assert manager.config.assignment_roster == {"admin": ["ops.admin.1"]}

        _write(path, "assignment_roster:\n  admin: [ops.admin.2]\n")
        assert manager.reload() is True
        assert manager.config.assignment_roster == {"admin": ["ops.admin.2"]}


class TestRosterAssignmentProvider:
    def _provider(self, tmp_path, roster_yaml):
        manager = OpsConfigManager()
        manager.load(_write(tmp_path / "ops.yaml", roster_yaml))
        return RosterAssignmentProvider(manager)

    def test_round_robin_skips_current_assignee(self, tmp_path):
        provider = self._provider(tmp_path, "assignment_roster:\n  ops_lead: [a, b]\n")
        item = make_request(assigned_to="a")

        picks = [asyncio.run(provider.pick_assignee("ops_lead", item)) for _ in range(3)]

        assert picks == ["b", "b", "b"]

    def test_single_member_is_always_picked(self, tmp_path):
        provider = self._provider(tmp_path, "assignment_roster:\n  admin: [only]\n")
        assert asyncio.run(provider.pick_assignee("admin", make_request(assigned_to="only"))) == "only"

    def test_unknown_role(self, tmp_path):
        provider = self._provider(tmp_path, "assignment_roster: {}\n")
        assert asyncio.run(provider.pick_assignee("ops_lead", make_request())) is None


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == CircuitState.HALF_OPEN
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


class TestWebhookNotificationGateway:
    def _gateway(self, handler, **kwargs):
        return WebhookNotificationGateway(
            webhook_url="https://hooks.example.test/ops",
            timeout_seconds=1,
            backoff_base=0,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    def test_posts_event_envelope(self):
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(202)

        gateway = self._gateway(handler)

        async def scenario():
            try:
                return await gateway.notify_roles(["ops_lead"], {"work_item_id": "req-1", "tier": 2})
            finally:
                await gateway.close()

        assert asyncio.run(scenario()) is True
        assert received[0]["event"] == "escalation.notify"
        assert received[0]["data"] == {"roles": ["ops_lead"], "work_item_id": "req-1", "tier": 2}

    def test_retries_then_raises(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        gateway = self._gateway(handler, max_retries=3)

        async def scenario():
            try:
                await gateway.open_incident({"work_item_id": "req-1"})
            finally:
                await gateway.close()

        with pytest.raises(NotificationException):
            asyncio.run(scenario())
        assert len(calls) == 3

    def test_open_circuit_short_circuits(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        gateway = self._gateway(handler, max_retries=1, circuit_breaker=breaker)

        async def scenario():
            try:
                with pytest.raises(NotificationException):
                    await gateway.notify_client("entity-1", {})
                with pytest.raises(NotificationException):
                    await gateway.notify_client("entity-1", {})
            finally:
                await gateway.close()

        asyncio.run(scenario())
        assert len(calls) == 1

    def test_unset_url_disables_delivery(self):
        gateway = WebhookNotificationGateway(webhook_url="")
        assert asyncio.run(gateway.notify_roles(["admin"], {})) is False
