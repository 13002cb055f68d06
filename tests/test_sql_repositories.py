"""
Repository tests against a SQLite database (aiosqlite).

Each test builds a fresh file database and drives the SQLAlchemy unit of
work exactly as the application does.
"""

import asyncio
import uuid
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from complianceops.compliance.application import ComplianceService
from complianceops.compliance.domain import ComplianceAlert
from complianceops.config import (
    ActivityType,
    BreachSeverity,
    ComplianceAlertSeverity,
    ComplianceAlertType,
    EscalationAction,
    EscalationSeverity,
)
from complianceops.core import DuplicateEscalationExecution, ResourceNotFoundException, StaleTransition
from complianceops.escalation.domain import EscalationExecution
from complianceops.infrastructure.database import create_tables
from complianceops.infrastructure.database.unit_of_work import sqlalchemy_uow_factory
from complianceops.sla.domain import SlaBreach, SlaException
from complianceops.workflow.domain import ActivityEntry, ServiceRequestStateMachine, ServiceRequestStatus as S

from tests.conftest import NOW, make_obligation, make_request
from tests.test_escalation import sla_rule


def run_with_database(tmp_path, scenario):
    """Run ``scenario(uow_factory)`` against a fresh database."""

    async def runner():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ops.db'}")
        try:
            await create_tables(engine)
            session_maker = async_sessionmaker(
                bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
            )
            return await scenario(sqlalchemy_uow_factory(session_maker))
        finally:
            await engine.dispose()

    return asyncio.run(runner())


def _breach(work_item_id="req-1", deadline=None):
    return SlaBreach(
        id=str(uuid.uuid4()),
        work_item_id=work_item_id,
        entity_id="entity-1",
        deadline=deadline or NOW - timedelta(hours=3),
        detected_at=NOW,
        hours_over=3.0,
        severity=BreachSeverity.MINOR,
    )


def _execution(tier=1):
    return EscalationExecution(
        id=str(uuid.uuid4()),
        rule_id="rule-sla",
        work_item_id="req-1",
        tier=tier,
        severity=EscalationSeverity.WARNING,
        progress_percent=62.5,
        fired_at=NOW,
        actions=(EscalationAction.NOTIFY,),
        notified_roles=("ops_executive",),
    )


class TestServiceRequestRepository:
    def test_round_trip_keeps_history_and_utc(self, tmp_path):
        async def scenario(uow_factory):
            request = make_request(status=S.DRAFT, sla_deadline=NOW + timedelta(days=2))
            machine = ServiceRequestStateMachine()

            async with uow_factory() as uow:
                await uow.service_requests.add(request)
                await uow.commit()

            async with uow_factory() as uow:
                loaded = await uow.service_requests.get(request.id)
                entry = machine.transition(loaded, S.INITIATED, "ops.exec.1", at=NOW)
                await uow.service_requests.save_transition(loaded, S.DRAFT, entry)
                await uow.commit()

            async with uow_factory() as uow:
                return await uow.service_requests.get(request.id)

        loaded = run_with_database(tmp_path, scenario)

        assert loaded.status == S.INITIATED
        assert loaded.sla_deadline == NOW + timedelta(days=2)
        assert loaded.sla_deadline.tzinfo is not None
        assert [e.to_status for e in loaded.history] == [S.INITIATED]

    def test_conditional_update_rejects_stale_status(self, tmp_path):
        async def scenario(uow_factory):
            async with uow_factory() as uow:
                await uow.service_requests.add(make_request(status=S.DRAFT))
                await uow.commit()

            machine = ServiceRequestStateMachine()
            async with uow_factory() as first, uow_factory() as second:
                a = await first.service_requests.get("req-1")
                b = await second.service_requests.get("req-1")

                entry = machine.transition(a, S.INITIATED, "ops.exec.1", at=NOW)
                await first.service_requests.save_transition(a, S.DRAFT, entry)
                await first.commit()

                entry = machine.transition(b, S.CANCELLED, "ops.exec.2", at=NOW)
                with pytest.raises(StaleTransition):
                    await second.service_requests.save_transition(b, S.DRAFT, entry)

            async with uow_factory() as uow:
                return await uow.service_requests.get("req-1")

        assert run_with_database(tmp_path, scenario).status == S.INITIATED

    def test_open_list_excludes_terminal(self, tmp_path):
        async def scenario(uow_factory):
            async with uow_factory() as uow:
                await uow.service_requests.add(make_request("open"))
                await uow.service_requests.add(make_request("done", status=S.COMPLETED))
                await uow.commit()
                return [r.id for r in await uow.service_requests.list_open()]

        assert run_with_database(tmp_path, scenario) == ["open"]


class TestSlaBreachRepository:
    def test_one_breach_per_item_and_deadline(self, tmp_path):
        async def scenario(uow_factory):
            async with uow_factory() as uow:
                first = await uow.sla_breaches.add_if_absent(_breach())
                duplicate = await uow.sla_breaches.add_if_absent(_breach())
                moved = await uow.sla_breaches.add_if_absent(_breach(deadline=NOW - timedelta(hours=1)))
                await uow.commit()
                return first, duplicate, moved, len(await uow.sla_breaches.list())

        assert run_with_database(tmp_path, scenario) == (True, False, True, 2)


class TestEscalationRepositories:
    def test_rule_round_trip(self, tmp_path):
        async def scenario(uow_factory):
            async with uow_factory() as uow:
                await uow.escalation_rules.add(sla_rule())
                await uow.commit()
            async with uow_factory() as uow:
                return await uow.escalation_rules.get_by_key("rule-sla")

        assert run_with_database(tmp_path, scenario) == sla_rule()

    def test_duplicate_tier_is_rejected_and_session_stays_usable(self, tmp_path):
        async def scenario(uow_factory):
            async with uow_factory() as uow:
                await uow.escalation_rules.add(sla_rule())
                await uow.escalation_executions.add(_execution(tier=1))
                with pytest.raises(DuplicateEscalationExecution):
                    await uow.escalation_executions.add(_execution(tier=1))
                await uow.escalation_executions.add(_execution(tier=2))
                await uow.commit()

            async with uow_factory() as uow:
                fired = await uow.escalation_executions.fired_tiers("req-1")
                listed = await uow.escalation_executions.list("req-1")
                return fired, listed

        fired, listed = run_with_database(tmp_path, scenario)

        assert fired == {"rule-sla": {1, 2}}
        assert [e.tier for e in listed] == [2, 1]
        assert listed[0].actions == (EscalationAction.NOTIFY,)


class TestComplianceRepositories:
    def test_recalculate_persists_state_and_history(self, tmp_path):
        async def scenario(uow_factory):
            async with uow_factory() as uow:
                await uow.obligations.add(make_obligation("o1", -2, penalty_risk="2500.00"))
                await uow.obligations.add(make_obligation("o2", 12))
                await uow.commit()

            async with uow_factory() as uow:
                _, changed = await ComplianceService(uow).recalculate("entity-1", NOW)
            async with uow_factory() as uow:
                _, unchanged = await ComplianceService(uow).recalculate("entity-1", NOW + timedelta(hours=1))
            async with uow_factory() as uow:
                state = await uow.compliance_states.get("entity-1")
                history = await uow.compliance_states.history("entity-1")
                entities = await uow.obligations.list_active_entity_ids()
            return changed, unchanged, state, history, entities

        changed, unchanged, state, history, entities = run_with_database(tmp_path, scenario)

        assert changed is True
        assert unchanged is False
        assert state.overdue_count == 1
        assert state.penalty_exposure == Decimal("2500.00")
        assert state.next_deadline.obligation_id == "o1"
        assert len(history) == 1
        assert entities == ["entity-1"]


class TestAuditRepositories:
    def test_reassignment_and_activity_round_trip(self, tmp_path):
        async def scenario(uow_factory):
            execution = replace(_execution(), previous_assignee="ops.exec.7", reassign_role="admin")
            async with uow_factory() as uow:
                await uow.escalation_rules.add(sla_rule())
                await uow.escalation_executions.add(execution)
                await uow.activities.add(ActivityEntry(
                    "req-1", ActivityType.ESCALATION, "tier 1", NOW, new_value={"tier": 1},
                ))
                await uow.activities.add(ActivityEntry(
                    "req-1", ActivityType.SLA_BREACH, "missed", NOW + timedelta(minutes=1),
                    client_visible=True, client_message="Sorry for the delay",
                ))
                await uow.commit()

            async with uow_factory() as uow:
                await uow.escalation_executions.record_reassignment(execution.id, "ops.admin.1")
                with pytest.raises(ResourceNotFoundException):
                    await uow.escalation_executions.record_reassignment("missing", "ops.admin.1")
                await uow.commit()

            async with uow_factory() as uow:
                stored = (await uow.escalation_executions.list("req-1"))[0]
                log = await uow.activities.list("req-1")
                feed = await uow.activities.list("req-1", client_visible_only=True)
            return stored, log, feed

        stored, log, feed = run_with_database(tmp_path, scenario)

        assert (stored.previous_assignee, stored.reassign_role, stored.new_assignee) == (
            "ops.exec.7", "admin", "ops.admin.1"
        )
        assert [e.activity_type for e in log] == [ActivityType.SLA_BREACH, ActivityType.ESCALATION]
        assert log[1].new_value == {"tier": 1}
        assert [e.client_text for e in feed] == ["Sorry for the delay"]

    def test_sla_exception_and_completed_listing(self, tmp_path):
        async def scenario(uow_factory):
            grant = SlaException(
                id="exc-1",
                work_item_id="req-1",
                entity_id="entity-1",
                previous_deadline=NOW,
                new_deadline=NOW + timedelta(hours=24),
                extension_hours=24.0,
                reason="client travelling",
                granted_by="ops.lead.1",
                granted_at=NOW,
            )
            async with uow_factory() as uow:
                await uow.service_requests.add(make_request(sla_deadline=NOW))
                await uow.service_requests.add(make_request(
                    "done", status=S.COMPLETED, status_changed_at=NOW - timedelta(hours=1)
                ))
                await uow.service_requests.set_sla_deadline("req-1", grant.new_deadline, NOW)
                await uow.sla_exceptions.add(grant)
                await uow.commit()

            async with uow_factory() as uow:
                item = await uow.service_requests.get("req-1")
                grants = await uow.sla_exceptions.list("req-1")
                completed = await uow.service_requests.list_completed(NOW - timedelta(days=1), NOW)
            return item, grants, completed

        item, grants, completed = run_with_database(tmp_path, scenario)

        assert item.sla_deadline == NOW + timedelta(hours=24)
        assert [g.id for g in grants] == ["exc-1"]
        assert grants[0].previous_deadline == NOW
        assert [r.id for r in completed] == ["done"]

    def test_one_active_alert_per_obligation(self, tmp_path):
        def alert(alert_id):
            return ComplianceAlert(
                id=alert_id,
                entity_id="entity-1",
                obligation_id="o1",
                alert_type=ComplianceAlertType.OVERDUE,
                severity=ComplianceAlertSeverity.WARNING,
                title="Obligation o1 Overdue",
                message="",
                triggered_at=NOW,
            )

        async def scenario(uow_factory):
            async with uow_factory() as uow:
                first = await uow.compliance_alerts.add(alert("a1"))
                duplicate = await uow.compliance_alerts.add(alert("a2"))
                await uow.compliance_alerts.resolve("a1", NOW)
                again = await uow.compliance_alerts.add(alert("a3"))
                await uow.commit()

            async with uow_factory() as uow:
                active = await uow.compliance_alerts.list_active("entity-1")
                every = await uow.compliance_alerts.list("entity-1", active_only=False)
            return (first, duplicate, again), active, every

        outcomes, active, every = run_with_database(tmp_path, scenario)

        assert outcomes == (True, False, True)
        assert [a.id for a in active] == ["a3"]
        assert sorted(a.id for a in every) == ["a1", "a3"]
        resolved = next(a for a in every if a.id == "a1")
        assert resolved.is_active is False
        assert resolved.resolved_at == NOW
