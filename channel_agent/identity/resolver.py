"""
Identity Resolver

Maps an inbound (channel, sender identifier) pair onto a verified user.
Matching is exact: the identifier is looked up as received, with no case
folding, trimming or phone-number normalisation. Unknown senders are
quarantined and rejected before any session is touched.
"""

from __future__ import annotations

from datetime import timedelta

import structlog

from channel_agent.channels.models import Channel, InboundMessage
from channel_agent.config import get_settings
from channel_agent.identity.directory import IdentityDirectory
from channel_agent.identity.types import (
    ChannelIdentity,
    QuarantineRecord,
    identity_type_for_channel,
)
from channel_agent.kernel.errors import UnknownSenderError, UnverifiedIdentityError
from channel_agent.kernel.ids import new_prefixed_id
from channel_agent.kernel.time import utc_now

logger = structlog.get_logger()

_CHANNEL_NOUNS = {
    Channel.WHATSAPP: "number",
    Channel.EMAIL: "email address",
    Channel.SMS: "phone number",
}


def unknown_sender_message(channel: Channel, product_name: str) -> str:
    channel_name = _CHANNEL_NOUNS[channel]
    return (
        f"This {channel_name} isn't linked to an {product_name} user account. "
        "If you believe this is an error, please contact your organization administrator. "
        "For security, no data access is available until your identity is verified."
    )


def unverified_identity_message(product_name: str) -> str:
    return (
        f"Your contact details are pending verification. An {product_name} "
        f"administrator needs to approve them before I can help."
    )


class IdentityResolver:
    def __init__(
        self,
        directory: IdentityDirectory,
        *,
        product_name: str | None = None,
        quarantine_retention_days: int | None = None,
    ) -> None:
        settings = get_settings()
        self._directory = directory
        self._product_name = product_name or settings.product_name
        self._retention = timedelta(
            days=quarantine_retention_days
            if quarantine_retention_days is not None
            else settings.quarantine_retention_days
        )

    async def resolve(self, channel: Channel, identifier: str) -> ChannelIdentity | None:
        return await self._directory.find_exact(identity_type_for_channel(channel), identifier)

    async def authenticate(self, message: InboundMessage) -> ChannelIdentity:
        """Return the verified identity behind `message` or raise.

        Raises UnknownSenderError (after quarantining the message) when the
        identifier is not registered, and UnverifiedIdentityError when it is
        registered but not verified, revoked, or not tied to a user.
        """
        identity = await self.resolve(message.channel, message.sender_identifier)

        if identity is None:
            await self._quarantine(message)
            raise UnknownSenderError(
                message=unknown_sender_message(message.channel, self._product_name)
            )

        if not identity.is_verified:
            logger.info(
                "Inbound message from unverified identity",
                identity_id=identity.id,
                status=identity.status.value,
                channel=message.channel.value,
            )
            raise UnverifiedIdentityError(message=unverified_identity_message(self._product_name))

        return identity

    async def _quarantine(self, message: InboundMessage) -> None:
        now = utc_now()
        record = QuarantineRecord(
            id=new_prefixed_id("qin"),
            channel=message.channel,
            sender_identifier=message.sender_identifier,
            sender_display_name=message.sender_display_name,
            message_type=message.message_type,
            text_content=message.text_content,
            raw_payload=message.raw_payload,
            received_at=now,
            expires_at=now + self._retention,
        )
        await self._directory.quarantine(record)
        logger.warning(
            "Inbound message quarantined",
            quarantine_id=record.id,
            channel=message.channel.value,
            text_length=len(message.text),
        )
