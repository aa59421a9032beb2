"""
explainlab - Main Application Entry Point

FastAPI service that issues a fixed set of SQL statements against Postgres,
on demand over HTTP and continuously from a background traffic generator,
so a monitoring agent's explain-plan collection has realistic (and
deliberately broken) queries to work on.
"""

from contextlib import asynccontextmanager
from typing import Any
import logging

from fastapi import FastAPI, Request

from explainlab.api.error_handling import register_exception_handlers
from explainlab.api.routes import queries
from explainlab.config import settings
from explainlab.core.query_pool import build_pool
from explainlab.core.traffic_generator import TrafficGenerator
from explainlab.logging_config import configure_logging

configure_logging(settings)

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager - builds the query pool and runs the
    traffic generator for the lifetime of the process.
    """
    # Startup
    logger.info("🚀 explainlab starting up...")
    logger.info(
        f"🐘 Target database: {settings.POSTGRES_USER}@{settings.POSTGRES_HOST}:"
        f"{settings.POSTGRES_PORT}/{settings.POSTGRES_DATABASE}"
    )

    pool = build_pool(settings)
    generator = TrafficGenerator(pool, settings)
    app.state.query_pool = pool
    app.state.traffic_generator = generator

    if generator.start():
        logger.info("✅ Traffic generator scheduled")
    else:
        logger.info("💤 Traffic generator idle; serving on-demand queries only")

    yield

    # Shutdown
    logger.info("🛑 explainlab shutting down...")
    try:
        await generator.stop()
    except Exception as e:
        logger.warning("Traffic generator shutdown encountered an error: %s", e)


# Initialize FastAPI application
app = FastAPI(
    title="explainlab",
    description="Postgres query workload for exercising explain-plan collection",
    version=APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

register_exception_handlers(app)


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for liveness probes.

    Reports process liveness and the traffic generator's state. It does not
    touch the database: a broken database is an expected condition here.
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "service": "explainlab",
        "version": APP_VERSION,
    }

    generator = getattr(request.app.state, "traffic_generator", None)
    if generator is not None:
        health_status["traffic_generator"] = generator.status()
    else:
        health_status["traffic_generator"] = {
            "enabled": settings.TRAFFIC_ENABLED,
            "active": False,
        }

    return health_status


# ============================================================================
# API Routers
# ============================================================================

app.include_router(queries.router, tags=["queries"])
