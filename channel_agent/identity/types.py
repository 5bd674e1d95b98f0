"""
Channel Identity Type Definitions
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from channel_agent.channels.models import Channel, MessageType


class IdentityType(str, Enum):
    """Kind of contact string an identity is keyed on."""

    WHATSAPP_PHONE = "whatsapp_phone"
    EMAIL = "email"
    PHONE = "phone"


class IdentityStatus(str, Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    REVOKED = "revoked"


_CHANNEL_IDENTITY_TYPES: dict[Channel, IdentityType] = {
    Channel.WHATSAPP: IdentityType.WHATSAPP_PHONE,
    Channel.EMAIL: IdentityType.EMAIL,
    Channel.SMS: IdentityType.PHONE,
}


def identity_type_for_channel(channel: Channel) -> IdentityType:
    return _CHANNEL_IDENTITY_TYPES[channel]


class ChannelIdentity(BaseModel):
    id: str
    identity_type: IdentityType
    identifier: str
    user_id: str | None = None
    organization_id: str | None = None
    status: IdentityStatus = IdentityStatus.UNVERIFIED
    verified_by: str | None = None
    verified_at: datetime | None = None

    @property
    def is_verified(self) -> bool:
        return self.status == IdentityStatus.VERIFIED and self.user_id is not None


class QuarantineRecord(BaseModel):
    """Message from an unrecognised sender, kept for admin triage only."""

    id: str
    channel: Channel
    sender_identifier: str
    sender_display_name: str | None = None
    message_type: MessageType
    text_content: str | None = None
    raw_payload: dict[str, Any] | None = None
    status: str = "pending"
    received_at: datetime
    expires_at: datetime
