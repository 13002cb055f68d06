"""
Escalation Application Layer
============================

Contains:
- Services: rule CRUD, tier evaluation, side-effect dispatch
- Ports: notification gateway and assignment provider interfaces
- DTOs: rule configuration shared by the API and YAML ops config
"""

from complianceops.escalation.application.dto import (
    TriggerConfig,
    TierConfig,
    EscalationRuleCreate,
    EscalationRuleResponse,
    EscalationExecutionResponse,
)
from complianceops.escalation.application.services import (
    IEscalationRuleRepository,
    IEscalationExecutionRepository,
    INotificationGateway,
    IAssignmentProvider,
    rule_from_config,
    EscalationRuleService,
    EscalationDispatcher,
    EscalationService,
)

__all__ = [
    # DTOs
    "TriggerConfig",
    "TierConfig",
    "EscalationRuleCreate",
    "EscalationRuleResponse",
    "EscalationExecutionResponse",
    # Services
    "rule_from_config",
    "EscalationRuleService",
    "EscalationDispatcher",
    "EscalationService",
    # Interfaces
    "IEscalationRuleRepository",
    "IEscalationExecutionRepository",
    "INotificationGateway",
    "IAssignmentProvider",
]
