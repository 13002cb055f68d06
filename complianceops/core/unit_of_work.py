"""
Unit of Work
============

Bundles the repositories of every bounded context behind one transaction.

Nothing is committed implicitly: services call ``commit()`` once their
changes are complete, and leaving the context with an exception rolls back.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from complianceops.compliance.application.services import (
        IComplianceAlertRepository,
        IComplianceStateRepository,
        IObligationRepository,
    )
    from complianceops.escalation.application.services import (
        IEscalationExecutionRepository,
        IEscalationRuleRepository,
    )
    from complianceops.sla.application.services import (
        ISlaBreachRepository,
        ISlaExceptionRepository,
    )
    from complianceops.workflow.application.services import (
        IActivityLogRepository,
        IServiceRequestRepository,
    )


class IUnitOfWork(ABC):
    """Transaction boundary plus repository access."""

    service_requests: "IServiceRequestRepository"
    activities: "IActivityLogRepository"
    obligations: "IObligationRepository"
    compliance_states: "IComplianceStateRepository"
    compliance_alerts: "IComplianceAlertRepository"
    escalation_rules: "IEscalationRuleRepository"
    escalation_executions: "IEscalationExecutionRepository"
    sla_breaches: "ISlaBreachRepository"
    sla_exceptions: "ISlaExceptionRepository"

    async def __aenter__(self) -> "IUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            await self.rollback()
        await self.close()

    @abstractmethod
    async def commit(self) -> None:
        """Persist all pending changes."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard all pending changes."""

    async def close(self) -> None:
        """Release underlying resources."""


UnitOfWorkFactory = Callable[[], IUnitOfWork]
