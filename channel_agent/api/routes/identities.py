"""
Identity Administration Routes.

Provides endpoints for:
- Reviewing quarantined inbound messages
- Registering, verifying and revoking channel identities
- Issuing workspace binding codes
"""

from datetime import datetime, timedelta

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from channel_agent.api.deps import (
    get_identity_directory,
    get_workspace_directory,
    require_admin_token,
)
from channel_agent.channels.models import Channel
from channel_agent.config import get_settings
from channel_agent.identity.directory import IdentityDirectory
from channel_agent.identity.types import ChannelIdentity, IdentityStatus, IdentityType, QuarantineRecord
from channel_agent.workspace.directory import SqlWorkspaceDirectory

logger = structlog.get_logger()

router = APIRouter(
    prefix="/identities",
    tags=["Identities"],
    dependencies=[Depends(require_admin_token)],
)


# =============================================================================
# Request/Response Models
# =============================================================================


class RegisterIdentityRequest(BaseModel):
    identity_type: IdentityType
    identifier: str = Field(..., min_length=1, max_length=255)
    user_id: str = Field(..., min_length=1)
    organization_id: str | None = Field(
        None,
        description="Pin this identifier to one workspace",
    )


class QuarantineListResponse(BaseModel):
    items: list[QuarantineRecord]


class CreateBindingCodeRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    organization_id: str = Field(..., min_length=1)
    channel: Channel | None = Field(None, description="Restrict the code to one channel")
    ttl_minutes: int | None = Field(None, ge=1, le=24 * 60)


class BindingCodeResponse(BaseModel):
    code: str
    expires_at: datetime


# =============================================================================
# Quarantine
# =============================================================================


@router.get("/quarantine", response_model=QuarantineListResponse)
async def list_quarantine(
    limit: int = Query(50, ge=1, le=500),
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> QuarantineListResponse:
    return QuarantineListResponse(items=await directory.list_quarantined(limit=limit))


@router.post("/quarantine/{record_id}/dismiss")
async def dismiss_quarantine(
    record_id: str,
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> dict:
    if not await directory.dismiss_quarantined(record_id):
        raise HTTPException(status_code=404, detail="Quarantine record not found")
    logger.info("Quarantine record dismissed", record_id=record_id)
    return {"dismissed": True}


# =============================================================================
# Identities
# =============================================================================


@router.post("", response_model=ChannelIdentity, status_code=201)
async def register_identity(
    body: RegisterIdentityRequest,
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> ChannelIdentity:
    """Register an identifier for a user. It stays unverified until verified."""
    return await directory.register(
        body.identity_type,
        body.identifier,
        body.user_id,
        organization_id=body.organization_id,
    )


@router.post("/{identity_id}/verify", response_model=ChannelIdentity)
async def verify_identity(
    identity_id: str,
    actor: str = Depends(require_admin_token),
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> ChannelIdentity:
    return await directory.set_status(identity_id, IdentityStatus.VERIFIED, actor_id=actor)


@router.post("/{identity_id}/revoke", response_model=ChannelIdentity)
async def revoke_identity(
    identity_id: str,
    actor: str = Depends(require_admin_token),
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> ChannelIdentity:
    return await directory.set_status(identity_id, IdentityStatus.REVOKED, actor_id=actor)


# =============================================================================
# Binding codes
# =============================================================================


@router.post("/binding-codes", response_model=BindingCodeResponse, status_code=201)
async def create_binding_code(
    body: CreateBindingCodeRequest,
    workspaces: SqlWorkspaceDirectory = Depends(get_workspace_directory),
) -> BindingCodeResponse:
    role = await workspaces.get_active_role(body.user_id, body.organization_id)
    if not role:
        raise HTTPException(status_code=404, detail="No active membership for that workspace")

    ttl = timedelta(minutes=body.ttl_minutes or get_settings().binding_code_ttl_minutes)
    binding = await workspaces.create_binding_code(
        body.user_id,
        body.organization_id,
        ttl,
        channel=body.channel,
    )
    return BindingCodeResponse(code=binding.code, expires_at=binding.expires_at)
