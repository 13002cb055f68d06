"""
In-memory test doubles for repositories, unit of work and collaborators.

Repositories hand out deep copies so that services cannot mutate stored
state without going through the repository, the same as with a database.
"""

import asyncio
import copy
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from complianceops.compliance.application.services import (
    IComplianceAlertRepository,
    IComplianceStateRepository,
    IObligationRepository,
)
from complianceops.compliance.domain import ComplianceAlert, ComplianceObligation, ComplianceState
from complianceops.config import BreachStatus
from complianceops.core import (
    DuplicateEscalationExecution,
    NotificationException,
    ResourceNotFoundException,
    StaleTransition,
)
from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.escalation.application.services import (
    IAssignmentProvider,
    IEscalationExecutionRepository,
    IEscalationRuleRepository,
    INotificationGateway,
)
from complianceops.escalation.domain import EscalationExecution, EscalationRule
from complianceops.sla.application.services import ISlaBreachRepository, ISlaExceptionRepository
from complianceops.sla.domain import SlaBreach, SlaException
from complianceops.workflow.application.services import IActivityLogRepository, IServiceRequestRepository
from complianceops.workflow.domain import (
    ActivityEntry,
    ServiceRequest,
    ServiceRequestStatus,
    StatusHistoryEntry,
)


@dataclass
class InMemoryStore:
    service_requests: Dict[str, ServiceRequest] = field(default_factory=dict)
    obligations: Dict[str, ComplianceObligation] = field(default_factory=dict)
    states: Dict[str, ComplianceState] = field(default_factory=dict)
    state_history: Dict[str, List[ComplianceState]] = field(default_factory=lambda: defaultdict(list))
    rules: Dict[str, EscalationRule] = field(default_factory=dict)
    executions: Dict[Tuple[str, str, int], EscalationExecution] = field(default_factory=dict)
    breaches: Dict[str, SlaBreach] = field(default_factory=dict)
    sla_exceptions: List[SlaException] = field(default_factory=list)
    activities: List[ActivityEntry] = field(default_factory=list)
    alerts: Dict[str, ComplianceAlert] = field(default_factory=dict)
    state_saves: int = 0
    commits: int = 0


class FakeServiceRequestRepository(IServiceRequestRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, request_id: str) -> Optional[ServiceRequest]:
        return copy.deepcopy(self._store.service_requests.get(request_id))

    async def add(self, request: ServiceRequest) -> None:
        self._store.service_requests[request.id] = copy.deepcopy(request)

    async def save_transition(self, request, expected_status, entry: StatusHistoryEntry) -> None:
        stored = self._store.service_requests.get(request.id)
        if stored is None:
            raise ResourceNotFoundException("ServiceRequest", request.id)
        if stored.status != expected_status:
            raise StaleTransition(request.id, expected_status, stored.status)
        self._store.service_requests[request.id] = copy.deepcopy(request)

    async def assign(self, request_id: str, assignee: str, at: datetime) -> None:
        stored = self._store.service_requests.get(request_id)
        if stored is None:
            raise ResourceNotFoundException("ServiceRequest", request_id)
        stored.assigned_to = assignee
        stored.updated_at = at

    async def set_sla_deadline(self, request_id: str, deadline: datetime, at: datetime) -> None:
        stored = self._store.service_requests.get(request_id)
        if stored is None:
            raise ResourceNotFoundException("ServiceRequest", request_id)
        stored.sla_deadline = deadline
        stored.updated_at = at

    async def list_open(self) -> List[ServiceRequest]:
        return [
            copy.deepcopy(r)
            for r in sorted(self._store.service_requests.values(), key=lambda r: r.id)
            if not r.is_terminal
        ]

    async def list_completed(self, since: datetime, until: datetime) -> List[ServiceRequest]:
        return [
            copy.deepcopy(r)
            for r in sorted(self._store.service_requests.values(), key=lambda r: r.id)
            if r.status == ServiceRequestStatus.COMPLETED and since <= r.status_changed_at < until
        ]


class FakeActivityLogRepository(IActivityLogRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, entry: ActivityEntry) -> None:
        self._store.activities.append(entry)

    async def list(
        self,
        work_item_id: str,
        client_visible_only: bool = False,
        limit: int = 100,
    ) -> List[ActivityEntry]:
        entries = [
            e for e in self._store.activities
            if e.work_item_id == work_item_id and (e.client_visible or not client_visible_only)
        ]
        entries.sort(key=lambda e: e.occurred_at, reverse=True)
        return entries[:limit]


class FakeObligationRepository(IObligationRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, obligation_id: str) -> Optional[ComplianceObligation]:
        return copy.deepcopy(self._store.obligations.get(obligation_id))

    async def add(self, obligation: ComplianceObligation) -> None:
        self._store.obligations[obligation.id] = copy.deepcopy(obligation)

    async def update(self, obligation: ComplianceObligation) -> None:
        self._store.obligations[obligation.id] = copy.deepcopy(obligation)

    async def list_for_entity(self, entity_id: str) -> List[ComplianceObligation]:
        # Yield like a real query so concurrent passes can interleave.
        await asyncio.sleep(0)
        return [
            copy.deepcopy(o)
            for o in self._store.obligations.values()
            if o.entity_id == entity_id
        ]

    async def list_active_entity_ids(self) -> List[str]:
        return sorted({o.entity_id for o in self._store.obligations.values() if not o.is_archived})


class FakeComplianceStateRepository(IComplianceStateRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, entity_id: str) -> Optional[ComplianceState]:
        return self._store.states.get(entity_id)

    async def save(self, state: ComplianceState) -> None:
        self._store.state_saves += 1
        self._store.states[state.entity_id] = state

    async def append_history(self, state: ComplianceState) -> None:
        self._store.state_history[state.entity_id].append(state)

    async def history(self, entity_id: str, limit: int = 100) -> List[ComplianceState]:
        return list(reversed(self._store.state_history.get(entity_id, [])))[:limit]


class FakeEscalationRuleRepository(IEscalationRuleRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, rule_id: str) -> Optional[EscalationRule]:
        return copy.deepcopy(self._store.rules.get(rule_id))

    async def get_by_key(self, rule_key: str) -> Optional[EscalationRule]:
        for rule in self._store.rules.values():
            if rule.rule_key == rule_key:
                return copy.deepcopy(rule)
        return None

    async def list(self, active_only: bool = False) -> List[EscalationRule]:
        rules = sorted(self._store.rules.values(), key=lambda r: r.rule_key)
        return [copy.deepcopy(r) for r in rules if r.is_active or not active_only]

    async def add(self, rule: EscalationRule) -> None:
        self._store.rules[rule.id] = copy.deepcopy(rule)

    async def update(self, rule: EscalationRule) -> None:
        if rule.id not in self._store.rules:
            raise ResourceNotFoundException("EscalationRule", rule.id)
        self._store.rules[rule.id] = copy.deepcopy(rule)


class FakeEscalationExecutionRepository(IEscalationExecutionRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, execution: EscalationExecution) -> None:
        key = (execution.rule_id, execution.work_item_id, execution.tier)
        if key in self._store.executions:
            raise DuplicateEscalationExecution(*key)
        self._store.executions[key] = execution

    async def fired_tiers(self, work_item_id: str) -> Dict[str, Set[int]]:
        fired: Dict[str, Set[int]] = defaultdict(set)
        for rule_id, item_id, tier in self._store.executions:
            if item_id == work_item_id:
                fired[rule_id].add(tier)
        return dict(fired)

    async def list(self, work_item_id: Optional[str] = None, limit: int = 100) -> List[EscalationExecution]:
        executions = [
            e for e in self._store.executions.values()
            if work_item_id is None or e.work_item_id == work_item_id
        ]
        executions.sort(key=lambda e: (e.fired_at, e.tier), reverse=True)
        return executions[:limit]

    async def record_reassignment(self, execution_id: str, new_assignee: str) -> None:
        for key, execution in self._store.executions.items():
            if execution.id == execution_id:
                self._store.executions[key] = replace(execution, new_assignee=new_assignee)
                return
        raise ResourceNotFoundException("EscalationExecution", execution_id)


class FakeSlaBreachRepository(ISlaBreachRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def get(self, breach_id: str) -> Optional[SlaBreach]:
        return copy.deepcopy(self._store.breaches.get(breach_id))

    async def add_if_absent(self, breach: SlaBreach) -> bool:
        for existing in self._store.breaches.values():
            if existing.work_item_id == breach.work_item_id and existing.deadline == breach.deadline:
                return False
        self._store.breaches[breach.id] = copy.deepcopy(breach)
        return True

    async def update(self, breach: SlaBreach) -> None:
        if breach.id not in self._store.breaches:
            raise ResourceNotFoundException("SlaBreach", breach.id)
        self._store.breaches[breach.id] = copy.deepcopy(breach)

    async def list(
        self,
        status: Optional[BreachStatus] = None,
        work_item_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[SlaBreach]:
        breaches = [
            copy.deepcopy(b) for b in self._store.breaches.values()
            if (status is None or b.status == BreachStatus(status))
            and (work_item_id is None or b.work_item_id == work_item_id)
        ]
        breaches.sort(key=lambda b: b.detected_at, reverse=True)
        return breaches[:limit]

    async def list_for_work_items(self, work_item_ids: Sequence[str]) -> List[SlaBreach]:
        wanted = set(work_item_ids)
        return [copy.deepcopy(b) for b in self._store.breaches.values() if b.work_item_id in wanted]


class FakeSlaExceptionRepository(ISlaExceptionRepository):
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def add(self, exception: SlaException) -> None:
        self._store.sla_exceptions.append(exception)

    async def list(self, work_item_id: str) -> List[SlaException]:
        grants = [e for e in self._store.sla_exceptions if e.work_item_id == work_item_id]
        return sorted(grants, key=lambda e: e.granted_at, reverse=True)


class FakeComplianceAlertRepository(IComplianceAlertRepository):
    """Enforces one active alert per obligation, like the unique index."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    async def list_active(self, entity_id: str) -> List[ComplianceAlert]:
        return await self.list(entity_id, active_only=True)

    async def add(self, alert: ComplianceAlert) -> bool:
        for existing in self._store.alerts.values():
            if existing.is_active and existing.obligation_id == alert.obligation_id:
                return False
        self._store.alerts[alert.id] = copy.deepcopy(alert)
        return True

    async def resolve(self, alert_id: str, at: datetime) -> None:
        alert = self._store.alerts.get(alert_id)
        if alert is None or not alert.is_active:
            raise ResourceNotFoundException("ComplianceAlert", alert_id)
        alert.resolve(at)

    async def list(self, entity_id: str, active_only: bool = True) -> List[ComplianceAlert]:
        alerts = [
            copy.deepcopy(a) for a in self._store.alerts.values()
            if a.entity_id == entity_id and (a.is_active or not active_only)
        ]
        alerts.sort(key=lambda a: a.triggered_at, reverse=True)
        return alerts


class FakeUnitOfWork(IUnitOfWork):
    """Writes go straight to the shared store; commits are only counted."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.service_requests = FakeServiceRequestRepository(store)
        self.activities = FakeActivityLogRepository(store)
        self.obligations = FakeObligationRepository(store)
        self.compliance_states = FakeComplianceStateRepository(store)
        self.compliance_alerts = FakeComplianceAlertRepository(store)
        self.escalation_rules = FakeEscalationRuleRepository(store)
        self.escalation_executions = FakeEscalationExecutionRepository(store)
        self.sla_breaches = FakeSlaBreachRepository(store)
        self.sla_exceptions = FakeSlaExceptionRepository(store)

    async def commit(self) -> None:
        self.store.commits += 1

    async def rollback(self) -> None:
        pass


def uow_factory_for(store: InMemoryStore):
    return lambda: FakeUnitOfWork(store)


class RecordingNotifier(INotificationGateway):
    """Collects notifications; ``fail=True`` makes every call raise."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.role_notifications: List[Tuple[Tuple[str, ...], dict]] = []
        self.client_notifications: List[Tuple[str, dict]] = []
        self.incidents: List[dict] = []

    async def notify_roles(self, roles: Sequence[str], payload: dict) -> bool:
        if self.fail:
            raise NotificationException("webhook down")
        self.role_notifications.append((tuple(roles), payload))
        return True

    async def notify_client(self, entity_id: str, payload: dict) -> bool:
        if self.fail:
            raise NotificationException("webhook down")
        self.client_notifications.append((entity_id, payload))
        return True

    async def open_incident(self, payload: dict) -> bool:
        if self.fail:
            raise NotificationException("webhook down")
        self.incidents.append(payload)
        return True


class FixedAssigner(IAssignmentProvider):
    def __init__(self, assignee: Optional[str] = "ops.lead.1"):
        self.assignee = assignee
        self.calls: List[Tuple[str, str]] = []

    async def pick_assignee(self, role: str, item: ServiceRequest) -> Optional[str]:
        self.calls.append((role, item.id))
        return self.assignee
