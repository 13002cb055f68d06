"""
Compliance Module
=================

Bounded Context for compliance obligations and per-entity health.

Responsibilities:
- Track obligations, evidence, due dates and completion
- Classify deadline risk in the evaluation timezone
- Score entity health, risk, grade and penalty exposure
- Keep a history of compliance state changes
"""
