"""
Compliance Interfaces Layer
===========================
"""

from complianceops.compliance.interfaces.controllers import compliance_router

__all__ = ["compliance_router"]
