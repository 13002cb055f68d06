"""
Workflow Interfaces Layer
=========================

FastAPI routes for service requests and the workflow graph.
"""

from complianceops.workflow.interfaces.controllers import service_request_router, workflow_router

__all__ = ["service_request_router", "workflow_router"]
