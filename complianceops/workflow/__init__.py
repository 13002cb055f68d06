"""
Workflow Module
===============

Bounded Context for the service request lifecycle.

Responsibilities:
- Enforce the status adjacency table (state machine)
- Keep an append-only status history per request
- Reject stale transitions (optimistic concurrency)
- Expose the workflow graph for presentation layers
"""
