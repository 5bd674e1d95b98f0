"""
Channel Agent - FastAPI Application

Conversational front door for the asset platform over WhatsApp, email and SMS.
Provides:
- Channel webhooks that run one agent turn per inbound message
- Identity administration (quarantine review, verification, binding codes)
- Health and Prometheus metrics endpoints
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from channel_agent.agent.factory import build_agent_runtime
from channel_agent.api.middleware import RequestIDMiddleware
from channel_agent.api.routes import channels, health, identities
from channel_agent.config import get_settings
from channel_agent.db.client import close_db, init_db
from channel_agent.kernel.http.errors import register_exception_handlers

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
        if get_settings().log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(get_settings().log_level)
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()
    logger.info(
        "Starting Channel Agent",
        version="0.1.0",
        environment=settings.environment,
    )

    await init_db()
    logger.info("PostgreSQL connection initialized")

    app.state.agent_runtime = build_agent_runtime(settings)

    yield

    logger.info("Shutting down Channel Agent")
    await app.state.agent_runtime.aclose()
    await close_db()


app = FastAPI(
    title="Channel Agent API",
    description="Multi-tenant conversational agent with confirmation-gated mutations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)
register_exception_handlers(app)

# Prometheus metrics endpoint
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

app.include_router(health.router, tags=["Health"])
app.include_router(channels.router, prefix="/api/v1", tags=["Channels"])
app.include_router(identities.router, prefix="/api/v1", tags=["Identities"])


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Channel Agent API",
        "version": "0.1.0",
        "health": "/health",
        "metrics": "/metrics",
    }
