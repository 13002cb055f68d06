"""
Escalation Module
=================

Bounded Context for tiered escalation of work items.

Responsibilities:
- Validate and store escalation rules (time, SLA and status triggers)
- Fire each tier at most once per rule and work item
- Notify roles and clients, reassign, open incidents
"""
