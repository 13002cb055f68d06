"""
Shared fixtures: a fixed evaluation instant, an in-memory store and
builders for the domain objects most tests need.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from complianceops.compliance.domain import ComplianceObligation
from complianceops.config import ObligationStatus, Priority
from complianceops.workflow.domain import ServiceRequest, ServiceRequestStatus

from tests.fakes import FakeUnitOfWork, InMemoryStore

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def make_request(
    request_id="req-1",
    status=ServiceRequestStatus.IN_PROGRESS,
    created_at=None,
    sla_deadline=None,
    priority=Priority.MEDIUM,
    entity_id="entity-1",
    service_key="gst_filing",
    assigned_to=None,
    resume_status=None,
    status_changed_at=None,
):
    created_at = created_at or NOW - timedelta(hours=10)
    return ServiceRequest(
        id=request_id,
        entity_id=entity_id,
        service_key=service_key,
        priority=priority,
        created_at=created_at,
        updated_at=created_at,
        status=status,
        status_changed_at=status_changed_at,
        sla_deadline=sla_deadline,
        assigned_to=assigned_to,
        resume_status=resume_status,
    )


def make_obligation(
    obligation_id,
    due_in_days,
    status=ObligationStatus.PENDING,
    entity_id="entity-1",
    penalty_risk="0",
    priority=Priority.MEDIUM,
):
    created_at = NOW - timedelta(days=30)
    obligation = ComplianceObligation(
        id=obligation_id,
        entity_id=entity_id,
        title=f"Obligation {obligation_id}",
        category="gst",
        due_date=NOW.date() + timedelta(days=due_in_days),
        created_at=created_at,
        updated_at=created_at,
        status=status,
        priority=priority,
        penalty_risk=Decimal(penalty_risk),
    )
    if status == ObligationStatus.COMPLETED:
        obligation.archived_at = created_at
    return obligation


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def today() -> date:
    return NOW.date()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def uow(store):
    return FakeUnitOfWork(store)
