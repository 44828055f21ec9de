"""FastAPI application for Notekeeper."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from .database import Database
from .errors import install_exception_handlers
from .observability import initialize_observability
from .routes import (
    admins_router,
    attachments_router,
    auth_router,
    comments_router,
    groups_router,
    health_router,
    notebooks_router,
    notes_router,
    tags_router,
    users_router,
)

# Initialize logger
logger = structlog.get_logger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("api_starting")

    # Initialize OpenTelemetry
    initialize_observability()

    # Connect to database
    await Database.connect()
    logger.info("api_started")

    yield

    # Shutdown
    logger.info("api_shutting_down")
    await Database.disconnect()
    logger.info("api_shutdown_complete")


app = FastAPI(
    title="Notekeeper API",
    description="Multi-user notes, notebooks and groups with role based access control",
    version="0.1.0",
    lifespan=lifespan,
)

install_exception_handlers(app)

# Instrument FastAPI with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

# Include routers
app.include_router(health_router)
app.include_router(health_router, prefix=API_PREFIX)
for router in (
    auth_router,
    users_router,
    admins_router,
    notes_router,
    notebooks_router,
    tags_router,
    comments_router,
    attachments_router,
    groups_router,
):
    app.include_router(router, prefix=API_PREFIX)
