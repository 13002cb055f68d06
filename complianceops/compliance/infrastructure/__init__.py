"""
Compliance Infrastructure Layer
===============================

SQLAlchemy models and repositories for obligations, compliance state and
obligation alerts.
"""

from complianceops.compliance.infrastructure.models import (
    ObligationModel,
    ComplianceStateModel,
    ComplianceStateHistoryModel,
    ComplianceAlertModel,
)
from complianceops.compliance.infrastructure.repositories import (
    SQLAlchemyObligationRepository,
    SQLAlchemyComplianceStateRepository,
    SQLAlchemyComplianceAlertRepository,
)

__all__ = [
    "ObligationModel",
    "ComplianceStateModel",
    "ComplianceStateHistoryModel",
    "ComplianceAlertModel",
    "SQLAlchemyObligationRepository",
    "SQLAlchemyComplianceStateRepository",
    "SQLAlchemyComplianceAlertRepository",
]
