"""
Workflow Infrastructure Layer
=============================

SQLAlchemy models and repositories for service requests and their
activity log.
"""

from complianceops.workflow.infrastructure.models import (
    ActivityLogModel,
    ServiceRequestModel,
    StatusHistoryModel,
)
from complianceops.workflow.infrastructure.repositories import (
    SQLAlchemyActivityLogRepository,
    SQLAlchemyServiceRequestRepository,
)

__all__ = [
    "ActivityLogModel",
    "ServiceRequestModel",
    "StatusHistoryModel",
    "SQLAlchemyActivityLogRepository",
    "SQLAlchemyServiceRequestRepository",
]
