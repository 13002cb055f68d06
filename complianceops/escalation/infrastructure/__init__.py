"""
Escalation Infrastructure Layer
===============================

Contains:
- Models: SQLAlchemy ORM models for rules and executions
- Repositories: database access implementations
- External: webhook notifications, ops config hot reload, roster assignment
"""

from complianceops.escalation.infrastructure.models import (
    EscalationRuleModel,
    EscalationExecutionModel,
)
from complianceops.escalation.infrastructure.repositories import (
    SQLAlchemyEscalationRuleRepository,
    SQLAlchemyEscalationExecutionRepository,
)
from complianceops.escalation.infrastructure.external import (
    OpsConfig,
    OpsConfigManager,
    RosterAssignmentProvider,
    CircuitBreaker,
    CircuitState,
    WebhookNotificationGateway,
)

__all__ = [
    "EscalationRuleModel",
    "EscalationExecutionModel",
    "SQLAlchemyEscalationRuleRepository",
    "SQLAlchemyEscalationExecutionRepository",
    "OpsConfig",
    "OpsConfigManager",
    "RosterAssignmentProvider",
    "CircuitBreaker",
    "CircuitState",
    "WebhookNotificationGateway",
]
