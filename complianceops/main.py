"""
Compliance Ops - Main Application
=================================

Operations engine for compliance service delivery.

Modules:
- Workflow: service request lifecycle (state machine, audit trail)
- Compliance: obligations and per-entity compliance health
- SLA: breach detection and breach lifecycle
- Escalation: tiered escalation rules and their executions
- Work Queue: SLA-ordered operator queue

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, pure engines
- Infrastructure: Database, webhook notifications, ops config
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from complianceops.config import settings
from complianceops.core import ApplicationException

# Infrastructure
from complianceops.infrastructure.database import init_database, close_database, create_tables
from complianceops.infrastructure.database.unit_of_work import sqlalchemy_uow_factory

# Escalation - external collaborators
from complianceops.escalation.application import EscalationRuleService
from complianceops.escalation.infrastructure import (
    OpsConfigManager,
    RosterAssignmentProvider,
    WebhookNotificationGateway,
)

# Scheduler
from complianceops.scheduler import RecalculationScheduler

# Module Routers
from complianceops.workflow.interfaces import service_request_router, workflow_router
from complianceops.compliance.interfaces import compliance_router
from complianceops.escalation.interfaces import escalation_router
from complianceops.sla.interfaces import sla_router
from complianceops.work_queue.interfaces import work_queue_router

# Middleware
from complianceops.shared.api.middleware import (
    RequestContextMiddleware,
    application_exception_handler,
    unhandled_exception_handler,
)

# Logging
from complianceops.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


async def seed_escalation_rules(uow_factory, config_manager: OpsConfigManager) -> int:
    """Upsert the default escalation rules from the ops config."""
    rules = config_manager.config.escalation_rules
    if not rules:
        return 0
    async with uow_factory() as uow:
        return await EscalationRuleService(uow).seed(rules)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load ops configuration and watch it for changes
    4. Seed default escalation rules
    5. Start the recalculation scheduler

    SHUTDOWN:
    1. Stop the scheduler and drain in-flight work
    2. Stop the config watcher, close the notification client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment, service=settings.app_name)
    logger.info("Starting Compliance Ops", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Create tables (for development - use migrations in production)
    database_ready = True
    try:
        await create_tables()
    except Exception as e:
        database_ready = False
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    config_manager = OpsConfigManager()
    config_manager.load(settings.ops_config_path)
    config_manager.start_watching()
    app.state.ops_config = config_manager

    uow_factory = sqlalchemy_uow_factory()

    if database_ready:
        try:
            seeded = await seed_escalation_rules(uow_factory, config_manager)
            logger.info("Default escalation rules loaded", extra={"count": seeded})
        except ApplicationException as e:
            logger.error("Default escalation rules rejected", extra={"error": e.message, **e.details})

    notifier = WebhookNotificationGateway(
        webhook_url=settings.notification_webhook_url,
        timeout_seconds=settings.notification_timeout_seconds,
    )
    scheduler = RecalculationScheduler(
        uow_factory,
        notifier,
        RosterAssignmentProvider(config_manager),
        interval_seconds=settings.recalculation_interval_seconds,
        tz=ZoneInfo(settings.evaluation_timezone),
        auto_flag_sla_breach=settings.auto_flag_sla_breach,
        system_actor_id=settings.system_actor_id,
    )
    if database_ready:
        await scheduler.start()
    app.state.scheduler = scheduler

    logger.info("Compliance Ops started")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Compliance Ops")

    await scheduler.stop()
    config_manager.stop_watching()
    await notifier.close()
    await close_database()

    logger.info("Compliance Ops shutdown complete")


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application; tests pass ``with_lifespan=False``."""
    app = FastAPI(
        title="Compliance Ops API",
        description="""
    ## Compliance Service Delivery Operations

    Workflow, compliance health, SLA and escalation engine for a compliance
    services business.

    ---

    ### Service Requests
    - `POST /service-requests` - Open a request (starts in `draft`)
    - `GET /service-requests/{id}` - Request with status history
    - `GET /service-requests/{id}/allowed-transitions` - Next statuses
    - `POST /service-requests/{id}/transitions` - Change status (409 if illegal or stale)
    - `GET /workflow/graph` - Status graph

    ### Compliance
    - `POST /compliance/obligations`, `PATCH /compliance/obligations/{id}`
    - `GET /compliance/entities/{id}/state` - Grade, health and risk scores
    - `POST /compliance/entities/{id}/recalculate`
    - `GET /compliance/entities/{id}/history`

    ### Escalation
    - `POST/PUT/GET/DELETE /escalation/rules[/{id}]`
    - `GET /escalation/executions?work_item_id=`

    ### SLA
    - `GET /sla/breaches`
    - `POST /sla/breaches/{id}/acknowledge|investigate|resolve`

    ### Work Queue
    - `GET /work-queue` - Open items, most urgent first
    - `GET /work-queue/stats`

    ---

    ### Grades

    | Health score | Grade |
    |--------------|-------|
    | 80 - 100     | green |
    | 60 - 79      | amber |
    | 0 - 59       | red   |
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if with_lifespan else None
    )

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # === Include Module Routers ===
    app.include_router(service_request_router)
    app.include_router(workflow_router)
    app.include_router(compliance_router)
    app.include_router(escalation_router)
    app.include_router(sla_router)
    app.include_router(work_queue_router)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/", root, methods=["GET"], tags=["Root"])
    return app


async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports scheduler and ops config state.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    ops_config = getattr(request.app.state, "ops_config", None)

    checks = {
        "scheduler": "running" if scheduler is not None and scheduler.is_running else "stopped",
        "ops_config": "loaded" if ops_config is not None else "not_loaded",
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "service_requests": "/service-requests",
            "workflow": "/workflow",
            "compliance": "/compliance",
            "escalation": "/escalation",
            "sla": "/sla",
            "work_queue": "/work-queue",
        }
    }


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "complianceops.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )
