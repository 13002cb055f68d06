"""
Work Queue Interfaces Layer
===========================
"""

from complianceops.work_queue.interfaces.controllers import work_queue_router

__all__ = ["work_queue_router"]
