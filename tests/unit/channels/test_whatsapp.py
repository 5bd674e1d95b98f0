from __future__ import annotations

import pytest

from channel_agent.channels.models import Channel, MessageType
from channel_agent.channels.whatsapp import GRAPH_API_BASE_URL, parse_webhook, verify_subscription

pytestmark = pytest.mark.unit


def _payload(*messages, field: str = "messages", contacts=None):
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "waba_1",
                "changes": [
                    {
                        "field": field,
                        "value": {
                            "messaging_product": "whatsapp",
                            "contacts": contacts or [{"wa_id": "15550001111", "profile": {"name": "Dana"}}],
                            "messages": list(messages),
                        },
                    }
                ],
            }
        ],
    }


def test_text_message_is_normalised():
    [message] = parse_webhook(
        _payload({"from": "15550001111", "id": "wamid.1", "type": "text", "text": {"body": "status of Solar Farm A"}})
    )

    assert message.channel == Channel.WHATSAPP
    assert message.sender_identifier == "15550001111"
    assert message.sender_display_name == "Dana"
    assert message.text == "status of Solar Farm A"
    assert message.thread_key == "15550001111"
    assert message.raw_payload["id"] == "wamid.1"


def test_document_message_carries_graph_media_reference():
    [message] = parse_webhook(
        _payload(
            {
                "from": "15550001111",
                "type": "document",
                "document": {
                    "id": "media_9",
                    "mime_type": "application/pdf",
                    "filename": "permit.pdf",
                    "caption": "for the north site",
                },
            }
        )
    )

    assert message.message_type == MessageType.DOCUMENT
    assert message.has_media is True
    assert message.media.url == f"{GRAPH_API_BASE_URL}/media_9"
    assert message.media.filename == "permit.pdf"
    assert message.text == "for the north site"


def test_interactive_reply_uses_button_title():
    [message] = parse_webhook(
        _payload(
            {
                "from": "15550001111",
                "type": "interactive",
                "interactive": {"type": "button_reply", "button_reply": {"id": "b1", "title": "Yes"}},
            }
        )
    )

    assert message.text == "Yes"


def test_status_callbacks_and_unsupported_types_are_skipped():
    statuses = _payload(field="statuses")
    unsupported = _payload({"from": "15550001111", "type": "reaction", "reaction": {"emoji": "👍"}})
    no_sender = _payload({"type": "text", "text": {"body": "hi"}})

    assert parse_webhook(statuses) == []
    assert parse_webhook(unsupported) == []
    assert parse_webhook(no_sender) == []


def test_verify_subscription():
    assert verify_subscription("subscribe", "tok", "12345", "tok") == "12345"
    assert verify_subscription("subscribe", "wrong", "12345", "tok") is None
    assert verify_subscription("subscribe", "tok", "12345", None) is None
    assert verify_subscription("unsubscribe", "tok", "12345", "tok") is None
