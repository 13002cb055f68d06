"""Tests for obligation alerts raised and resolved during recalculation."""

import asyncio
from datetime import timedelta

import pytest

from complianceops.compliance.application import ComplianceService
from complianceops.compliance.domain import ComplianceAlert, alert_condition, plan_alerts
from complianceops.config import (
    ComplianceAlertSeverity as Severity,
    ComplianceAlertType as AlertType,
    ObligationStatus,
    Priority,
)

from tests.conftest import NOW, make_obligation


def active_alert(obligation_id, alert_type=AlertType.OVERDUE, severity=Severity.WARNING, alert_id=None):
    return ComplianceAlert(
        id=alert_id or f"alert-{obligation_id}",
        entity_id="entity-1",
        obligation_id=obligation_id,
        alert_type=alert_type,
        severity=severity,
        title=f"Obligation {obligation_id} Overdue",
        message="",
        triggered_at=NOW - timedelta(days=1),
    )


class TestAlertCondition:
    @pytest.mark.parametrize(
        "due_in_days, priority, expected",
        [
            (-1, Priority.MEDIUM, (AlertType.OVERDUE, Severity.WARNING)),
            (-1, Priority.URGENT, (AlertType.OVERDUE, Severity.CRITICAL)),
            (2, Priority.URGENT, (AlertType.UPCOMING, Severity.CRITICAL)),
            (6, Priority.URGENT, (AlertType.UPCOMING, Severity.CRITICAL)),
            (2, Priority.HIGH, None),
            (30, Priority.URGENT, None),
        ],
    )
    def test_conditions(self, due_in_days, priority, expected):
        obligation = make_obligation("o1", due_in_days, priority=priority)
        assert alert_condition(obligation, NOW) == expected

    def test_completed_obligation_is_never_alerted(self):
        obligation = make_obligation("o1", -5, status=ObligationStatus.COMPLETED, priority=Priority.URGENT)
        assert alert_condition(obligation, NOW) is None


class TestPlanAlerts:
    def test_raises_missing_alerts_in_obligation_order(self):
        obligations = [
            make_obligation("o2", 1, priority=Priority.URGENT),
            make_obligation("o1", -2),
            make_obligation("o3", 20),
        ]

        plan = plan_alerts(obligations, [], NOW)

        assert [a.obligation_id for a in plan.raise_alerts] == ["o1", "o2"]
        overdue, upcoming = plan.raise_alerts
        assert overdue.title == "Obligation o1 Overdue"
        assert overdue.due_date == NOW.date() - timedelta(days=2)
        assert upcoming.title == "Obligation o2 Due Soon"
        assert upcoming.triggered_at == NOW
        assert plan.resolve_alerts == ()

    def test_unchanged_alert_is_kept(self):
        plan = plan_alerts([make_obligation("o1", -2)], [active_alert("o1")], NOW)
        assert plan.is_empty

    def test_cleared_alert_is_resolved(self):
        stale = active_alert("o1")
        plan = plan_alerts([make_obligation("o1", -2, status=ObligationStatus.COMPLETED)], [stale], NOW)

        assert plan.raise_alerts == ()
        assert plan.resolve_alerts == (stale,)

    def test_changed_alert_is_replaced(self):
        upcoming = active_alert("o1", AlertType.UPCOMING, Severity.CRITICAL)
        plan = plan_alerts([make_obligation("o1", -1, priority=Priority.URGENT)], [upcoming], NOW)

        assert plan.resolve_alerts == (upcoming,)
        assert [(a.alert_type, a.severity) for a in plan.raise_alerts] == [(AlertType.OVERDUE, Severity.CRITICAL)]

    def test_duplicate_active_alert_is_resolved(self):
        first = active_alert("o1", alert_id="a1")
        second = active_alert("o1", alert_id="a2")

        plan = plan_alerts([make_obligation("o1", -2)], [first, second], NOW)

        assert plan.raise_alerts == ()
        assert plan.resolve_alerts == (second,)


class TestRecalculationAlerts:
    def test_recalculation_raises_alerts(self, store, uow):
        store.obligations["o1"] = make_obligation("o1", -2)
        store.obligations["o2"] = make_obligation("o2", 3, priority=Priority.URGENT)
        store.obligations["o3"] = make_obligation("o3", 3)

        _, changed = asyncio.run(ComplianceService(uow).recalculate("entity-1", NOW))
        alerts = asyncio.run(ComplianceService(uow).list_alerts("entity-1"))

        assert changed is True
        assert sorted((a.obligation_id, a.alert_type) for a in alerts) == [
            ("o1", AlertType.OVERDUE),
            ("o2", AlertType.UPCOMING),
        ]

    def test_repeat_recalculation_keeps_one_alert(self, store, uow):
        store.obligations["o1"] = make_obligation("o1", -2)
        service = ComplianceService(uow)

        asyncio.run(service.recalculate("entity-1", NOW))
        commits = store.commits
        _, changed = asyncio.run(service.recalculate("entity-1", NOW + timedelta(minutes=5)))

        assert changed is False
        assert store.commits == commits
        assert len(store.alerts) == 1

    def test_escalating_priority_replaces_alert(self, store, uow):
        store.obligations["o1"] = make_obligation("o1", -2)
        service = ComplianceService(uow)
        asyncio.run(service.recalculate("entity-1", NOW))
        original = next(iter(store.alerts.values()))

        store.obligations["o1"].priority = Priority.URGENT
        asyncio.run(service.recalculate("entity-1", NOW + timedelta(minutes=5)))

        active = asyncio.run(service.list_alerts("entity-1"))
        history = asyncio.run(service.list_alerts("entity-1", active_only=False))
        assert [a.severity for a in active] == [Severity.CRITICAL]
        assert len(history) == 2
        assert store.alerts[original.id].is_active is False
        assert store.alerts[original.id].resolved_at == NOW + timedelta(minutes=5)

    def test_alert_changes_commit_without_state_change(self, store, uow):
        store.obligations["o1"] = make_obligation("o1", 20)
        service = ComplianceService(uow)
        asyncio.run(service.recalculate("entity-1", NOW))
        store.alerts["stale"] = active_alert("o1", alert_id="stale")
        commits = store.commits
        saves = store.state_saves

        _, changed = asyncio.run(service.recalculate("entity-1", NOW))

        assert changed is False
        assert store.state_saves == saves
        assert store.commits == commits + 1
        assert store.alerts["stale"].is_active is False
