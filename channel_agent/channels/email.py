"""
Inbound email normalisation.

Accepts the JSON body posted by the inbound-mail provider (Postmark-style
field names) and produces one InboundMessage. The reply text is preferred
over the full body so quoted history does not reach the classifier; the
first attachment, if any, is carried inline as a `data:` URL.
"""

from __future__ import annotations

import re
from typing import Any

from channel_agent.channels.models import Channel, InboundMessage, MediaReference, MessageType
from channel_agent.kernel.errors import ValidationError

_ANGLE_BRACKETS_RE = re.compile(r"[<>]")
_ADDRESS_RE = re.compile(r"<([^>]+)>")


def _strip_message_id(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = _ANGLE_BRACKETS_RE.sub("", value).strip()
    return cleaned or None


def _parse_address(value: Any) -> tuple[str | None, str | None]:
    """Return (email, display name) from a FromFull object or a From header."""
    if isinstance(value, dict):
        return value.get("Email"), value.get("Name") or None
    if isinstance(value, str):
        match = _ADDRESS_RE.search(value)
        if match:
            name = value[: match.start()].strip().strip('"') or None
            return match.group(1), name
        return value.strip() or None, None
    return None, None


def _headers(data: dict[str, Any]) -> dict[str, str]:
    return {
        str(header.get("Name", "")).lower(): str(header.get("Value", ""))
        for header in data.get("Headers") or []
    }


def _message_type_for(content_type: str | None) -> MessageType:
    if content_type and content_type.startswith("image/"):
        return MessageType.IMAGE
    if content_type and content_type.startswith("audio/"):
        return MessageType.AUDIO
    if content_type and content_type.startswith("video/"):
        return MessageType.VIDEO
    return MessageType.DOCUMENT


def parse_inbound_email(data: dict[str, Any]) -> InboundMessage:
    sender, display_name = _parse_address(data.get("FromFull") or data.get("From"))
    if not sender:
        raise ValidationError(message="Inbound email has no sender", code="email.missing_sender")

    headers = _headers(data)
    in_reply_to = _strip_message_id(headers.get("in-reply-to"))
    references = [
        ref
        for ref in (_strip_message_id(part) for part in headers.get("references", "").split())
        if ref
    ]

    text = data.get("StrippedTextReply") or data.get("TextBody")
    media: MediaReference | None = None
    message_type = MessageType.TEXT

    attachments = data.get("Attachments") or []
    if attachments:
        first = attachments[0]
        content_type = first.get("ContentType") or "application/octet-stream"
        if first.get("Content"):
            media = MediaReference(
                url=f"data:{content_type};base64,{first['Content']}",
                content_type=content_type,
                filename=first.get("Name"),
            )
            message_type = _message_type_for(content_type)

    # A new email with no reply chain starts a thread keyed by its own Message-ID.
    thread_id = None
    if not references and not in_reply_to:
        thread_id = _strip_message_id(data.get("MessageID"))

    return InboundMessage(
        channel=Channel.EMAIL,
        sender_identifier=sender,
        sender_display_name=display_name,
        message_type=message_type,
        text_content=text,
        media=media,
        thread_id=thread_id,
        subject=data.get("Subject"),
        in_reply_to=in_reply_to,
        references=references,
    )
