"""
Conversation session state as read back from the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from channel_agent.channels.models import Channel


class ContextPointers(BaseModel):
    """Ids of entities the conversation last touched.

    Pointers are hints. They are re-validated through the RBAC bridge before
    being summarised or used as a default.
    """

    last_project_id: str | None = None
    last_site_id: str | None = None
    last_asset_id: str | None = None
    last_document_id: str | None = None
    active_dataroom_id: str | None = None
    active_view_scope_id: str | None = None
    last_attachment_id: str | None = None


POINTER_FIELDS: tuple[str, ...] = tuple(ContextPointers.model_fields)


class StoredPendingAction(BaseModel):
    id: str
    name: str
    payload: dict[str, Any] = Field(default_factory=dict)
    prompt: str
    organization_id: str
    created_at: datetime


class ConversationSessionState(BaseModel):
    id: str
    user_id: str
    organization_id: str
    channel: Channel
    channel_identifier: str
    thread_id: str
    pointers: ContextPointers = Field(default_factory=ContextPointers)
    pending_action: StoredPendingAction | None = None
    created_at: datetime
    updated_at: datetime
    last_message_at: datetime | None = None
