"""
Compliance Ops
==============

Workflow, compliance health, SLA and escalation engine for compliance
service delivery.
"""

__version__ = "1.0.0"
