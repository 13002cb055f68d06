"""
SQLAlchemy Unit of Work
=======================

One AsyncSession shared by every repository for the lifetime of the unit.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from complianceops.core.unit_of_work import IUnitOfWork
from complianceops.infrastructure.database import get_session_maker
from complianceops.workflow.infrastructure.repositories import (
    SQLAlchemyActivityLogRepository,
    SQLAlchemyServiceRequestRepository,
)
from complianceops.compliance.infrastructure.repositories import (
    SQLAlchemyObligationRepository,
    SQLAlchemyComplianceStateRepository,
    SQLAlchemyComplianceAlertRepository,
)
from complianceops.escalation.infrastructure.repositories import (
    SQLAlchemyEscalationRuleRepository,
    SQLAlchemyEscalationExecutionRepository,
)
from complianceops.sla.infrastructure.repositories import (
    SQLAlchemySlaBreachRepository,
    SQLAlchemySlaExceptionRepository,
)


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over an async SQLAlchemy session.

    Usage:
        async with SQLAlchemyUnitOfWork(session_maker) as uow:
            request = await uow.service_requests.get("SR-1")
            ...
            await uow.commit()
    """

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        session_maker = self._session_maker or get_session_maker()
        self._session = session_maker()

        self.service_requests = SQLAlchemyServiceRequestRepository(self._session)
        self.activities = SQLAlchemyActivityLogRepository(self._session)
        self.obligations = SQLAlchemyObligationRepository(self._session)
        self.compliance_states = SQLAlchemyComplianceStateRepository(self._session)
        self.compliance_alerts = SQLAlchemyComplianceAlertRepository(self._session)
        self.escalation_rules = SQLAlchemyEscalationRuleRepository(self._session)
        self.escalation_executions = SQLAlchemyEscalationExecutionRepository(self._session)
        self.sla_breaches = SQLAlchemySlaBreachRepository(self._session)
        self.sla_exceptions = SQLAlchemySlaExceptionRepository(self._session)

        return self

    @property
    def session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("Unit of work not entered")
        return self._session

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None


def sqlalchemy_uow_factory(
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None
):
    """Factory producing a fresh unit of work per call."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_maker)

    return factory


async def get_uow() -> AsyncGenerator[IUnitOfWork, None]:
    """
    FastAPI dependency yielding a unit of work.

    Usage in FastAPI:
        @router.get("/{request_id}")
        async def get_request(request_id: str, uow: IUnitOfWork = Depends(get_uow)):
            ...
    """
    async with SQLAlchemyUnitOfWork() as uow:
        yield uow
