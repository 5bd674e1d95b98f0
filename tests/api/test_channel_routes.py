from __future__ import annotations

import pytest

from channel_agent.agent import responses
from channel_agent.channels.models import Channel
from channel_agent.classifier.schemas import AskStatusIntent, CreateWorkOrderIntent
from channel_agent.operations.models import OperationId
from tests.support.api import VERIFY_TOKEN, WEBHOOK_SECRET

pytestmark = [pytest.mark.api, pytest.mark.asyncio]

AUTH = {"X-Webhook-Secret": WEBHOOK_SECRET}


def _whatsapp_payload(text: str, sender: str = "15550001111") -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "waba_1",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "contacts": [{"wa_id": sender, "profile": {"name": "Dana"}}],
                            "messages": [
                                {"from": sender, "id": "wamid.1", "type": "text", "text": {"body": text}}
                            ],
                        },
                    }
                ],
            }
        ],
    }


class TestWebhookSecret:
    async def test_missing_secret_is_rejected(self, async_client, harness):
        resp = await async_client.post("/api/v1/channels/whatsapp/webhook", json=_whatsapp_payload("hi"))

        assert resp.status_code == 401
        assert resp.json()["code"] == "http.401"
        assert harness.sessions.sessions == {}

    async def test_wrong_secret_is_rejected(self, async_client):
        resp = await async_client.post(
            "/api/v1/channels/inbound",
            json={"channel": "whatsapp", "sender_identifier": "15550001111", "message_type": "text"},
            headers={"X-Webhook-Secret": "nope"},
        )

        assert resp.status_code == 401


class TestWhatsAppWebhook:
    async def test_subscription_handshake(self, async_client):
        resp = await async_client.get(
            "/api/v1/channels/whatsapp/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": VERIFY_TOKEN, "hub.challenge": "42"},
        )

        assert resp.status_code == 200
        assert resp.text == "42"

    async def test_subscription_handshake_with_wrong_token(self, async_client):
        resp = await async_client.get(
            "/api/v1/channels/whatsapp/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "42"},
        )

        assert resp.status_code == 403

    async def test_message_runs_one_turn_and_returns_reply(self, async_client, harness):
        harness.classifier.result = AskStatusIntent(project_id="proj_1", confidence=0.9)

        resp = await async_client.post(
            "/api/v1/channels/whatsapp/webhook",
            json=_whatsapp_payload("status of Solar Farm A"),
            headers=AUTH,
        )

        assert resp.status_code == 200
        [reply] = resp.json()["replies"]
        assert reply["sender_identifier"] == "15550001111"
        assert reply["response"]["message"].startswith("**Solar Farm A** Status:")
        assert "X-Request-ID" in resp.headers

    async def test_status_only_webhook_has_no_replies(self, async_client, harness):
        payload = _whatsapp_payload("ignored")
        payload["entry"][0]["changes"][0]["field"] = "statuses"

        resp = await async_client.post("/api/v1/channels/whatsapp/webhook", json=payload, headers=AUTH)

        assert resp.status_code == 200
        assert resp.json() == {"replies": []}
        assert harness.sessions.sessions == {}

    async def test_unknown_sender_gets_link_instructions(self, async_client, harness):
        resp = await async_client.post(
            "/api/v1/channels/whatsapp/webhook",
            json=_whatsapp_payload("hello", sender="15559990000"),
            headers=AUTH,
        )

        [reply] = resp.json()["replies"]
        assert reply["response"]["success"] is False
        assert "isn't linked" in reply["response"]["message"]
        assert len(harness.identities.quarantined) == 1


class TestInboundMessage:
    async def test_confirmation_round_trip(self, async_client, harness):
        harness.operations.responses[OperationId.MAINTENANCE_CREATE_WORK_ORDER] = {"id": "wo_1"}
        harness.classifier.result = CreateWorkOrderIntent(description="inverter fault", confidence=0.9)
        message = {
            "channel": "whatsapp",
            "sender_identifier": "15550001111",
            "message_type": "text",
            "text_content": "log a work order for the inverter fault",
        }

        parked = await async_client.post("/api/v1/channels/inbound", json=message, headers=AUTH)
        confirmed = await async_client.post(
            "/api/v1/channels/inbound",
            json={**message, "text_content": "yes"},
            headers=AUTH,
        )

        assert parked.json()["requires_confirmation"] is True
        assert confirmed.json()["message"] == "✅ Work order created (ID: wo_1)"
        assert len(harness.operations.calls_for(OperationId.MAINTENANCE_CREATE_WORK_ORDER)) == 1

    async def test_invalid_message_is_a_validation_error(self, async_client):
        resp = await async_client.post(
            "/api/v1/channels/inbound",
            json={"channel": "carrier_pigeon", "sender_identifier": "x", "message_type": "text"},
            headers=AUTH,
        )

        assert resp.status_code == 422
        assert resp.json()["code"] == "http.validation_error"


class TestEmailInbound:
    async def test_email_reply_is_returned(self, async_client, harness):
        harness.add_user("user_2", identifier="ops@example.com", channel=Channel.EMAIL)

        resp = await async_client.post(
            "/api/v1/channels/email/inbound",
            json={
                "FromFull": {"Email": "ops@example.com", "Name": "Ops Team"},
                "Subject": "Hello",
                "MessageID": "<root-1@mail.example.com>",
                "TextBody": "yes",
            },
            headers=AUTH,
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["sender_identifier"] == "ops@example.com"
        assert body["response"]["message"] == responses.NOTHING_PENDING
