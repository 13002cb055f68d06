"""
SLA Module
==========

Bounded Context for SLA evaluation and breach tracking.

Responsibilities:
- Bucket work items by hours remaining to their SLA deadline
- Record one breach per (work item, deadline)
- Track the breach lifecycle (acknowledge, investigate, resolve)
"""

__version__ = "1.0.0"
