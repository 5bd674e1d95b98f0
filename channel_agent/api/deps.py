"""Shared FastAPI dependencies."""

from __future__ import annotations

import hmac

import structlog
from fastapi import Header, HTTPException, Request

from channel_agent.agent.handler import ConversationalAgent
from channel_agent.config import get_settings
from channel_agent.identity.directory import IdentityDirectory, SqlIdentityDirectory
from channel_agent.workspace.directory import SqlWorkspaceDirectory

logger = structlog.get_logger()


def get_agent(request: Request) -> ConversationalAgent:
    runtime = getattr(request.app.state, "agent_runtime", None)
    if runtime is None:
        raise HTTPException(status_code=503, detail="Agent not initialised")
    return runtime.agent


def get_identity_directory() -> IdentityDirectory:
    return SqlIdentityDirectory()


def get_workspace_directory() -> SqlWorkspaceDirectory:
    return SqlWorkspaceDirectory()


async def verify_webhook_secret(
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> None:
    settings = get_settings()
    if not settings.webhook_shared_secret:
        if settings.environment == "production":
            raise HTTPException(status_code=401, detail="Invalid webhook secret")
        logger.warning("Webhook shared secret not configured; allowing request")
        return
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, settings.webhook_shared_secret):
        logger.warning("Webhook rejected: bad shared secret")
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


async def require_admin_token(
    authorization: str | None = Header(None, alias="Authorization"),
) -> str:
    """Accept `Authorization: Bearer <admin token>` and return the actor label."""
    settings = get_settings()
    token = settings.admin_api_token
    if not token:
        raise HTTPException(status_code=401, detail="Admin API disabled")

    scheme, _, presented = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not presented or not hmac.compare_digest(presented, token):
        raise HTTPException(status_code=401, detail="Invalid admin token")
    return "admin_api"
