"""
Work Queue Module
=================

Operator queue over open work items, ordered by SLA urgency.
"""
