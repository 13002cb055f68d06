"""
Escalation Interfaces Layer
===========================
"""

from complianceops.escalation.interfaces.controllers import escalation_router

__all__ = ["escalation_router"]
