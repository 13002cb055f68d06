"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (workflow,
compliance, SLA, escalation, work queue).

Architecture Pattern: Modular Monolith
- Each module is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add business logic from any bounded context to the shared kernel.
"""

__version__ = "1.0.0"
