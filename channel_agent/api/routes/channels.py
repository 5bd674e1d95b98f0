"""
Channel inbound routes.

Provider payloads are normalised into InboundMessages and handed to the
agent one turn at a time. Replies are returned in the response body;
delivery back to the provider happens outside this service.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from channel_agent.agent.handler import ConversationalAgent
from channel_agent.api.deps import get_agent, verify_webhook_secret
from channel_agent.channels.email import parse_inbound_email
from channel_agent.channels.models import AgentResponse, InboundMessage
from channel_agent.channels.whatsapp import parse_webhook, verify_subscription
from channel_agent.config import get_settings

logger = structlog.get_logger()

router = APIRouter(prefix="/channels", tags=["Channels"])


class ChannelReply(BaseModel):
    sender_identifier: str
    response: AgentResponse


class ChannelReplies(BaseModel):
    replies: list[ChannelReply]


@router.post(
    "/inbound",
    response_model=AgentResponse,
    dependencies=[Depends(verify_webhook_secret)],
)
async def inbound_message(
    message: InboundMessage,
    agent: ConversationalAgent = Depends(get_agent),
) -> AgentResponse:
    """Process one already-normalised inbound message."""
    return await agent.process_inbound_message(message)


# =============================================================================
# WHATSAPP
# =============================================================================


@router.get("/whatsapp/webhook", response_class=PlainTextResponse)
async def whatsapp_verify(
    hub_mode: str | None = Query(None, alias="hub.mode"),
    hub_verify_token: str | None = Query(None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(None, alias="hub.challenge"),
) -> str:
    challenge = verify_subscription(
        hub_mode,
        hub_verify_token,
        hub_challenge,
        get_settings().whatsapp_verify_token,
    )
    if challenge is None:
        raise HTTPException(status_code=403, detail="Verification failed")
    return challenge


@router.post(
    "/whatsapp/webhook",
    response_model=ChannelReplies,
    dependencies=[Depends(verify_webhook_secret)],
)
async def whatsapp_webhook(
    request: Request,
    agent: ConversationalAgent = Depends(get_agent),
) -> ChannelReplies:
    payload: dict[str, Any] = await request.json()
    messages = parse_webhook(payload)
    logger.info("WhatsApp webhook received", messages=len(messages))

    replies = []
    for message in messages:
        response = await agent.process_inbound_message(message)
        replies.append(ChannelReply(sender_identifier=message.sender_identifier, response=response))
    return ChannelReplies(replies=replies)


# =============================================================================
# EMAIL
# =============================================================================


@router.post(
    "/email/inbound",
    response_model=ChannelReply,
    dependencies=[Depends(verify_webhook_secret)],
)
async def email_inbound(
    request: Request,
    agent: ConversationalAgent = Depends(get_agent),
) -> ChannelReply:
    data: dict[str, Any] = await request.json()
    message = parse_inbound_email(data)
    response = await agent.process_inbound_message(message)
    return ChannelReply(sender_identifier=message.sender_identifier, response=response)
