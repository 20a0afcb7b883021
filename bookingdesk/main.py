"""
Application entry point: FastAPI app with database pool and calendar client
lifecycle management.
"""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from bookingdesk.config import settings
from bookingdesk.db.pool import db_pool
from bookingdesk.infrastructure.observability.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    log_request,
    setup_logging,
)
from bookingdesk.middleware.cors import CORSMiddleware
from bookingdesk.routes import health, scheduling
from bookingdesk.services.calendar.google_client import google_calendar_service

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    if settings.database_configured():
        logger.info("Initializing database pool")
        await db_pool.initialize()
    else:
        logger.warning("DATABASE_URL not set, identity and integration lookups will return 503")

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await google_calendar_service.close()
    except Exception as e:
        logger.error("Error closing calendar client", error=str(e))
        shutdown_errors.append(f"Calendar client: {e}")

    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="BookingDesk",
    description="Calendar availability and booking for automation workflows",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allowed_origins=settings.cors_origins())

# Include routers
app.include_router(health.router)
app.include_router(scheduling.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing, request id and resolved tenant."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    request.state.tenant_id = None
    clear_request_context()
    bind_request_context(request_id=request_id)

    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
        tenant_id=getattr(request.state, "tenant_id", None),
    )
    response.headers["X-Request-ID"] = request_id
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
