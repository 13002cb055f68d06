"""
SLA Infrastructure Layer
========================

SQLAlchemy models and repositories for SLA breaches and exception grants.
"""

from complianceops.sla.infrastructure.models import SlaBreachModel, SlaExceptionModel
from complianceops.sla.infrastructure.repositories import (
    SQLAlchemySlaBreachRepository,
    SQLAlchemySlaExceptionRepository,
)

__all__ = [
    "SlaBreachModel",
    "SlaExceptionModel",
    "SQLAlchemySlaBreachRepository",
    "SQLAlchemySlaExceptionRepository",
]
