"""
Infrastructure Layer
====================

Database engine, session and unit-of-work management.
"""
