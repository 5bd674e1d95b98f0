"""
WhatsApp Cloud API payload normalisation.

Turns a Cloud API webhook body into channel-neutral InboundMessages. Status
callbacks (sent/delivered/read/failed) are ignored; only user messages
reach the agent.
"""

from __future__ import annotations

from typing import Any

import structlog

from channel_agent.channels.models import Channel, InboundMessage, MediaReference, MessageType

logger = structlog.get_logger()

GRAPH_API_BASE_URL = "https://graph.facebook.com/v19.0"

_MEDIA_TYPES = {
    "image": MessageType.IMAGE,
    "document": MessageType.DOCUMENT,
    "audio": MessageType.AUDIO,
    "video": MessageType.VIDEO,
    "sticker": MessageType.IMAGE,
}


def media_url_for(media_id: str) -> str:
    """Graph API URL that resolves a media id to a short-lived download link."""
    return f"{GRAPH_API_BASE_URL}/{media_id}"


def verify_subscription(mode: str | None, token: str | None, challenge: str | None, verify_token: str | None) -> str | None:
    """Return the challenge when the subscription handshake matches our token."""
    if verify_token and mode == "subscribe" and token == verify_token:
        logger.info("WhatsApp webhook verified")
        return challenge
    logger.warning(
        "WhatsApp webhook verification failed",
        mode=mode,
        token_match=bool(verify_token) and token == verify_token,
    )
    return None


def parse_webhook(payload: dict[str, Any]) -> list[InboundMessage]:
    messages: list[InboundMessage] = []

    for entry in payload.get("entry", []):
        for change in entry.get("changes", []):
            if change.get("field") != "messages":
                continue
            value = change.get("value", {})

            contacts = value.get("contacts", [])
            profile_names = {
                contact.get("wa_id"): contact.get("profile", {}).get("name")
                for contact in contacts
            }

            for msg in value.get("messages", []):
                parsed = _parse_message(msg, profile_names)
                if parsed is not None:
                    messages.append(parsed)

    return messages


def _parse_message(msg: dict[str, Any], profile_names: dict[str, str | None]) -> InboundMessage | None:
    msg_type = msg.get("type", "unknown")
    sender = msg.get("from")
    if not sender:
        return None

    text: str | None = None
    media: MediaReference | None = None
    message_type = MessageType.TEXT

    if msg_type == "text":
        text = msg.get("text", {}).get("body")

    elif msg_type in _MEDIA_TYPES:
        media_data = msg.get(msg_type, {})
        media_id = media_data.get("id")
        message_type = _MEDIA_TYPES[msg_type]
        text = media_data.get("caption")
        if media_id:
            media = MediaReference(
                url=media_url_for(media_id),
                content_type=media_data.get("mime_type"),
                filename=media_data.get("filename"),
            )

    elif msg_type == "location":
        loc = msg.get("location", {})
        message_type = MessageType.LOCATION
        text = loc.get("name") or loc.get("address")

    elif msg_type == "contacts":
        message_type = MessageType.CONTACT

    elif msg_type == "button":
        text = msg.get("button", {}).get("text")

    elif msg_type == "interactive":
        interactive = msg.get("interactive", {})
        reply_type = interactive.get("type")
        if reply_type in ("button_reply", "list_reply"):
            text = interactive.get(reply_type, {}).get("title")

    else:
        logger.debug("Unsupported WhatsApp message type", type=msg_type)
        return None

    return InboundMessage(
        channel=Channel.WHATSAPP,
        sender_identifier=sender,
        sender_display_name=profile_names.get(sender),
        message_type=message_type,
        text_content=text,
        media=media,
        raw_payload=msg,
    )
