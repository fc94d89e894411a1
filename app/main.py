from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from sqlalchemy import text

from app.core.config import settings, app_logger
from app.core.db import dispose_db
from app.core.dependencies import ServicesDep, SessionDep
from app.core.exceptions.handlers import (
    exception_schema,
    register_exception_handlers,
)
from app.core.exceptions.types import AppException
from app.core.services import ServiceContainer
from app.infrastructure.scheduler import CleanupScheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    app_logger.info("Starting application...")

    # Build delivery services (transport, templates, dispatcher, email flows)
    app_logger.info("Building services...")
    services = ServiceContainer.build(settings)
    app.state.services = services
    mode = "simulated" if services.dispatcher.simulated else "smtp"
    app_logger.info(f"Services built successfully. Email delivery mode: {mode}.")

    # Start the cleanup scheduler (only if enabled)
    cleanup_scheduler = CleanupScheduler()
    app.state.cleanup_scheduler = cleanup_scheduler
    if settings.ENABLE_SCHEDULER:
        app_logger.info("Starting cleanup scheduler...")
        cleanup_scheduler.start()
        app_logger.info("Cleanup scheduler started successfully.")
    else:
        app_logger.info("Scheduler disabled via ENABLE_SCHEDULER setting.")

    # Yield control back to the application
    yield

    # Cleanup on shutdown
    app_logger.info("Shutting down application...")

    if cleanup_scheduler.registered_jobs:
        app_logger.info("Stopping cleanup scheduler...")
        cleanup_scheduler.stop()
        app_logger.info("Cleanup scheduler stopped successfully.")

    app_logger.info("Disposing database engine...")
    await dispose_db()
    app_logger.info("Database engine disposed successfully.")


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    debug=settings.DEBUG,
    openapi_url="/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    responses=exception_schema,
)

# Register exception handlers (more specific first)
register_exception_handlers(app)


@app.get("/", include_in_schema=False)
async def root(request: Request):
    base_url = request.base_url._url.rstrip("/")
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "documentations": {
            "swagger": f"{base_url}/docs",
            "redoc": f"{base_url}/redoc",
        },
        "version": settings.APP_VERSION,
    }


@app.head("/health", include_in_schema=False)
@app.get("/health")
async def health_check(
    request: Request, session: SessionDep, services: ServicesDep
):
    """
    Health check endpoint to verify if the API is running.

    Checks:
        - Database connectivity
        - Cleanup scheduler state
        - Email delivery mode (smtp or simulated)
    """
    cleanup_scheduler: CleanupScheduler = request.app.state.cleanup_scheduler
    health_status = {
        "status": "ok",
        "message": f"{settings.APP_NAME} API is running.",
        "checks": {
            "database": "ok",
            "scheduler": "running" if cleanup_scheduler.is_running else "stopped",
            "email": "simulated" if services.dispatcher.simulated else "smtp",
        },
        "scheduled_jobs": cleanup_scheduler.registered_jobs,
    }

    # Check database connectivity
    try:
        result = await session.execute(text("SELECT 1"))
        if result.scalar() != 1:
            health_status["checks"]["database"] = "unhealthy"
            health_status["status"] = "degraded"
    except Exception as e:
        app_logger.error(f"Database health check failed: {e}")
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "degraded"

    if settings.ENABLE_SCHEDULER and not cleanup_scheduler.is_running:
        health_status["status"] = "degraded"

    # Return 503 if any check failed
    if health_status["status"] != "ok":
        raise AppException(
            "One or more health checks failed.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=health_status,
        )

    return health_status
