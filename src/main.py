"""
Helpdesk Service - Main Application
====================================

Multi-tenant helpdesk with SLA tracking.

Modules:
- Tickets: ticket lifecycle, comments, activity log, dashboards
- Organizations: tenants, users, SLA thresholds
- SLA: breach sweep and escalation

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects, access rules
- Infrastructure: Database, notification channel, background tasks
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

# Configuration and Core
from src.config import settings
from src.core import ApplicationException, Clock, system_clock

# Infrastructure
from src.infrastructure.database import close_database, create_tables, init_database
from src.infrastructure.notifications import INotifier, WebhookNotifier
from src.infrastructure.tasks import BackgroundDispatcher

# SLA Module
from src.sla.application import ISLADefaultsProvider, SLABreachSweeper
from src.sla.infrastructure import SLADefaultsManager, SLAScheduler, breach_repository_scope

# Ticket Module
from src.tickets.infrastructure import ActivityLogWriter, TicketNotificationPublisher

# Module Routers
from src.organizations.interfaces import organizations_router, users_router
from src.sla.interfaces import sla_router
from src.tickets.interfaces import dashboard_router, router as tickets_router

# Shared
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
    validation_exception_handler,
)
from src.shared.infrastructure.logging import get_logger, log_latency, setup_logging

logger = get_logger(__name__)


def wire_services(
    app: FastAPI,
    *,
    dispatcher: BackgroundDispatcher,
    notifier: INotifier,
    sla_defaults: ISLADefaultsProvider,
    clock: Clock = system_clock
) -> SLABreachSweeper:
    """
    Store the process-wide collaborators on app.state.

    Request-scoped services are built per request from these plus a session.
    """
    activity_log = ActivityLogWriter(dispatcher, clock=clock)

    app.state.settings = settings
    app.state.clock = clock
    app.state.dispatcher = dispatcher
    app.state.notifier = notifier
    app.state.sla_defaults = sla_defaults
    app.state.activity_log = activity_log
    app.state.ticket_notifier = TicketNotificationPublisher(notifier, dispatcher)
    app.state.sweeper = SLABreachSweeper(
        repository_scope=breach_repository_scope,
        notifier=notifier,
        activity_log=activity_log,
        dispatcher=dispatcher,
        clock=clock
    )
    return app.state.sweeper


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA defaults and watch the file
    4. Start background dispatcher
    5. Wire services
    6. Start SLA scheduler (once per process)

    SHUTDOWN (reverse order):
    1. Stop SLA scheduler
    2. Stop defaults watcher
    3. Drain background dispatcher
    4. Close notification channel
    5. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Helpdesk Service", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()

    # Create tables (for development - use Alembic in production)
    try:
        await create_tables()
    except Exception as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    sla_defaults = SLADefaultsManager()
    sla_defaults.load(settings.sla_defaults_path)
    sla_defaults.start_watching()

    dispatcher = BackgroundDispatcher(
        workers=settings.background_workers,
        queue_size=settings.background_queue_size
    )
    await dispatcher.start()

    notifier = WebhookNotifier()
    sweeper = wire_services(app, dispatcher=dispatcher, notifier=notifier, sla_defaults=sla_defaults)

    async def sla_sweep_job() -> int:
        with log_latency(logger, "sla_sweep"):
            return await sweeper.run_sla_breach_sweep()

    scheduler = SLAScheduler(interval_seconds=settings.sla_sweep_interval_seconds)
    await scheduler.start(sla_sweep_job)
    app.state.scheduler = scheduler

    logger.info("Helpdesk Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Helpdesk Service")

    await scheduler.stop()
    sla_defaults.stop_watching()
    await dispatcher.stop(drain=True)
    await notifier.close()
    await close_database()

    logger.info("Helpdesk Service shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Helpdesk API",
    description="""
    ## Multi-tenant Helpdesk

    Organizations register, users open tickets, agents and admins work them
    under per-organization SLAs.

    ### SLA thresholds

    Each organization sets hours per priority (1-720). A ticket's SLA due
    time is fixed when it is created. Open tickets past due are escalated
    to their owner exactly once by the breach sweep.

    ### Roles

    | Role | Scope |
    |------|-------|
    | USER | own tickets |
    | AGENT | works tickets of its organization |
    | ADMIN | manages tickets, users and SLA of its organization |
    | SUPER_ADMIN | every organization |
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(tickets_router)
app.include_router(dashboard_router)
app.include_router(organizations_router)
app.include_router(users_router)
app.include_router(sla_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "sla_defaults": "loaded",
                        "sla_scheduler": "running",
                        "background_queue": 0
                    }
                }
            }
        }
    }
})
async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Reports scheduler state and the background queue backlog.
    """
    state = request.app.state
    scheduler = getattr(state, "scheduler", None)
    dispatcher = getattr(state, "dispatcher", None)

    checks = {
        "sla_defaults": "loaded" if getattr(state, "sla_defaults", None) else "not_loaded",
        "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        "background_queue": dispatcher.pending if dispatcher else None
    }

    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
