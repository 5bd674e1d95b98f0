"""
Identity directory: exact-match lookup of channel senders plus the
quarantine queue and the admin operations that manage identities.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from sqlalchemy import text

from channel_agent.db.client import get_db_session
from channel_agent.identity.types import (
    ChannelIdentity,
    IdentityStatus,
    IdentityType,
    QuarantineRecord,
)
from channel_agent.kernel.errors import ConflictError, NotFoundError
from channel_agent.kernel.ids import new_prefixed_id
from channel_agent.kernel.serialization import json_dumps_canonical
from channel_agent.kernel.time import utc_now

logger = structlog.get_logger()


class IdentityDirectory(Protocol):
    async def find_exact(self, identity_type: IdentityType, identifier: str) -> ChannelIdentity | None:
        ...

    async def quarantine(self, record: QuarantineRecord) -> None:
        ...

    async def register(
        self,
        identity_type: IdentityType,
        identifier: str,
        user_id: str,
        organization_id: str | None = None,
    ) -> ChannelIdentity:
        ...

    async def set_status(
        self,
        identity_id: str,
        status: IdentityStatus,
        actor_id: str | None = None,
    ) -> ChannelIdentity:
        ...

    async def list_quarantined(self, limit: int = 50) -> list[QuarantineRecord]:
        ...

    async def dismiss_quarantined(self, record_id: str) -> bool:
        ...


_IDENTITY_COLUMNS = """
    id, identity_type, identifier, user_id, organization_id,
    status, verified_by, verified_at
"""


def _row_to_identity(row) -> ChannelIdentity:
    return ChannelIdentity(
        id=row.id,
        identity_type=IdentityType(row.identity_type),
        identifier=row.identifier,
        user_id=row.user_id,
        organization_id=row.organization_id,
        status=IdentityStatus(row.status),
        verified_by=row.verified_by,
        verified_at=row.verified_at,
    )


class SqlIdentityDirectory:
    """IdentityDirectory backed by `channel_identities` / `quarantined_inbound`."""

    async def find_exact(self, identity_type: IdentityType, identifier: str) -> ChannelIdentity | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {_IDENTITY_COLUMNS}
                    FROM channel_identities
                    WHERE identity_type = :identity_type AND identifier = :identifier
                    """
                ),
                {"identity_type": identity_type.value, "identifier": identifier},
            )
            row = result.fetchone()
        return _row_to_identity(row) if row else None

    async def quarantine(self, record: QuarantineRecord) -> None:
        async with get_db_session() as session:
            await session.execute(
                text(
                    """
                    INSERT INTO quarantined_inbound (
                        id, channel, sender_identifier, sender_display_name,
                        message_type, text_content, raw_payload, status,
                        received_at, expires_at
                    ) VALUES (
                        :id, :channel, :sender_identifier, :sender_display_name,
                        :message_type, :text_content, CAST(:raw_payload AS JSON), :status,
                        :received_at, :expires_at
                    )
                    """
                ),
                {
                    "id": record.id,
                    "channel": record.channel.value,
                    "sender_identifier": record.sender_identifier,
                    "sender_display_name": record.sender_display_name,
                    "message_type": record.message_type.value,
                    "text_content": record.text_content,
                    "raw_payload": json_dumps_canonical(record.raw_payload) if record.raw_payload is not None else None,
                    "status": record.status,
                    "received_at": record.received_at,
                    "expires_at": record.expires_at,
                },
            )

    async def register(
        self,
        identity_type: IdentityType,
        identifier: str,
        user_id: str,
        organization_id: str | None = None,
    ) -> ChannelIdentity:
        now = utc_now()
        identity_id = new_prefixed_id("ident")
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    INSERT INTO channel_identities (
                        id, identity_type, identifier, user_id, organization_id,
                        status, created_at, updated_at
                    ) VALUES (
                        :id, :identity_type, :identifier, :user_id, :organization_id,
                        :status, :now, :now
                    )
                    ON CONFLICT (identity_type, identifier) DO NOTHING
                    RETURNING id
                    """
                ),
                {
                    "id": identity_id,
                    "identity_type": identity_type.value,
                    "identifier": identifier,
                    "user_id": user_id,
                    "organization_id": organization_id,
                    "status": IdentityStatus.UNVERIFIED.value,
                    "now": now,
                },
            )
            if result.fetchone() is None:
                raise ConflictError(message="Identifier already registered", code="identity.already_registered")

        logger.info("Channel identity registered", identity_id=identity_id, identity_type=identity_type.value)
        return ChannelIdentity(
            id=identity_id,
            identity_type=identity_type,
            identifier=identifier,
            user_id=user_id,
            organization_id=organization_id,
            status=IdentityStatus.UNVERIFIED,
        )

    async def set_status(
        self,
        identity_id: str,
        status: IdentityStatus,
        actor_id: str | None = None,
    ) -> ChannelIdentity:
        now = utc_now()
        verified = status == IdentityStatus.VERIFIED
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    f"""
                    UPDATE channel_identities
                    SET status = :status,
                        verified_by = CASE WHEN :verified THEN :actor_id ELSE verified_by END,
                        verified_at = CASE WHEN :verified THEN :now ELSE verified_at END,
                        updated_at = :now
                    WHERE id = :id
                    RETURNING {_IDENTITY_COLUMNS}
                    """
                ),
                {
                    "status": status.value,
                    "verified": verified,
                    "actor_id": actor_id,
                    "now": now,
                    "id": identity_id,
                },
            )
            row = result.fetchone()
        if not row:
            raise NotFoundError(message="Identity not found", code="identity.not_found")
        logger.info("Channel identity status changed", identity_id=identity_id, status=status.value, actor_id=actor_id)
        return _row_to_identity(row)

    async def list_quarantined(self, limit: int = 50) -> list[QuarantineRecord]:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT id, channel, sender_identifier, sender_display_name,
                           message_type, text_content, raw_payload, status,
                           received_at, expires_at
                    FROM quarantined_inbound
                    WHERE status = 'pending' AND expires_at > :now
                    ORDER BY received_at DESC
                    LIMIT :limit
                    """
                ),
                {"now": utc_now(), "limit": limit},
            )
            rows = result.fetchall()
        return [
            QuarantineRecord(
                id=row.id,
                channel=row.channel,
                sender_identifier=row.sender_identifier,
                sender_display_name=row.sender_display_name,
                message_type=row.message_type,
                text_content=row.text_content,
                raw_payload=row.raw_payload,
                status=row.status,
                received_at=row.received_at,
                expires_at=row.expires_at,
            )
            for row in rows
        ]

    async def dismiss_quarantined(self, record_id: str) -> bool:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    UPDATE quarantined_inbound
                    SET status = 'dismissed'
                    WHERE id = :id AND status = 'pending'
                    RETURNING id
                    """
                ),
                {"id": record_id},
            )
            return result.fetchone() is not None
