"""
Channel message models.

InboundMessage is the channel-neutral shape every provider payload is
normalised into before it reaches the agent; AgentResponse is what the
agent hands back for delivery.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Channel(str, Enum):
    WHATSAPP = "whatsapp"
    EMAIL = "email"
    SMS = "sms"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    AUDIO = "audio"
    VIDEO = "video"
    LOCATION = "location"
    CONTACT = "contact"


class MediaReference(BaseModel):
    url: str
    content_type: str | None = None
    filename: str | None = None


class InboundMessage(BaseModel):
    channel: Channel
    sender_identifier: str
    sender_display_name: str | None = None
    message_type: MessageType = MessageType.TEXT
    text_content: str | None = None
    media: MediaReference | None = None
    thread_id: str | None = None
    raw_payload: dict[str, Any] | None = None

    # Email-only
    subject: str | None = None
    in_reply_to: str | None = None
    references: list[str] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return (self.text_content or "").strip()

    @property
    def has_media(self) -> bool:
        return self.message_type != MessageType.TEXT and self.media is not None

    @property
    def thread_key(self) -> str:
        """Stable thread identifier for session lookup.

        Email threads are keyed by the root Message-ID of the reply chain so
        every reply lands in the same session; chat channels without a
        conversation id fall back to one thread per sender.
        """
        if self.thread_id:
            return self.thread_id
        if self.channel == Channel.EMAIL:
            if self.references:
                return self.references[0]
            if self.in_reply_to:
                return self.in_reply_to
        return self.sender_identifier


class AgentResponse(BaseModel):
    success: bool
    message: str
    requires_confirmation: bool | None = None
    confirmation_prompt: str | None = None
    data: dict[str, Any] | None = None
    suggested_actions: list[str] | None = None
