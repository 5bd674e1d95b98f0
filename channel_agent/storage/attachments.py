"""
Ingested attachment records.

Link-state transitions are guarded in SQL so each one only applies from
the expected prior state:
- unlinked -> link_pending (a link has been proposed)
- link_pending -> linked (the proposal was confirmed)
- link_pending -> unlinked (the proposal was cancelled, expired or failed)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

from sqlalchemy import text

from channel_agent.channels.models import Channel
from channel_agent.db.client import get_db_session
from channel_agent.kernel.time import utc_now


class LinkState(str, Enum):
    UNLINKED = "unlinked"
    LINK_PENDING = "link_pending"
    LINKED = "linked"


@dataclass
class AttachmentRecord:
    id: str
    organization_id: str
    ingested_by_user_id: str
    source_channel: Channel
    storage_key: str
    mime_type: str
    filename: str
    byte_size: int
    sha256: str | None
    link_state: LinkState = LinkState.UNLINKED
    linked_entity_type: str | None = None
    linked_entity_id: str | None = None
    link_confidence: float | None = None
    created_at: datetime | None = None


class AttachmentStore(Protocol):
    async def create(self, record: AttachmentRecord) -> None:
        ...

    async def get(self, attachment_id: str) -> AttachmentRecord | None:
        ...

    async def mark_link_pending(
        self,
        attachment_id: str,
        entity_type: str,
        entity_id: str,
        confidence: float | None,
    ) -> bool:
        ...

    async def mark_linked(self, attachment_id: str, user_id: str) -> bool:
        ...

    async def revert_to_unlinked(self, attachment_id: str) -> bool:
        ...


class SqlAttachmentStore:
    async def create(self, record: AttachmentRecord) -> None:
        now = utc_now()
        async with get_db_session() as session:
            await session.execute(
                text(
                    """
                    INSERT INTO ingested_attachments (
                        id, organization_id, ingested_by_user_id, source_channel,
                        storage_key, mime_type, filename, byte_size, sha256,
                        link_state, created_at, updated_at
                    ) VALUES (
                        :id, :organization_id, :user_id, :channel,
                        :storage_key, :mime_type, :filename, :byte_size, :sha256,
                        'unlinked', :now, :now
                    )
                    """
                ),
                {
                    "id": record.id,
                    "organization_id": record.organization_id,
                    "user_id": record.ingested_by_user_id,
                    "channel": record.source_channel.value,
                    "storage_key": record.storage_key,
                    "mime_type": record.mime_type,
                    "filename": record.filename,
                    "byte_size": record.byte_size,
                    "sha256": record.sha256,
                    "now": now,
                },
            )

    async def get(self, attachment_id: str) -> AttachmentRecord | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT id, organization_id, ingested_by_user_id, source_channel,
                           storage_key, mime_type, filename, byte_size, sha256,
                           link_state, linked_entity_type, linked_entity_id,
                           link_confidence, created_at
                    FROM ingested_attachments
                    WHERE id = :id
                    """
                ),
                {"id": attachment_id},
            )
            row = result.fetchone()
        if not row:
            return None
        return AttachmentRecord(
            id=row.id,
            organization_id=row.organization_id,
            ingested_by_user_id=row.ingested_by_user_id,
            source_channel=Channel(row.source_channel),
            storage_key=row.storage_key,
            mime_type=row.mime_type,
            filename=row.filename,
            byte_size=row.byte_size,
            sha256=row.sha256,
            link_state=LinkState(row.link_state),
            linked_entity_type=row.linked_entity_type,
            linked_entity_id=row.linked_entity_id,
            link_confidence=row.link_confidence,
            created_at=row.created_at,
        )

    async def mark_link_pending(
        self,
        attachment_id: str,
        entity_type: str,
        entity_id: str,
        confidence: float | None,
    ) -> bool:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    UPDATE ingested_attachments
                    SET link_state = 'link_pending',
                        linked_entity_type = :entity_type,
                        linked_entity_id = :entity_id,
                        link_confidence = :confidence,
                        updated_at = :now
                    WHERE id = :id AND link_state IN ('unlinked', 'link_pending')
                    RETURNING id
                    """
                ),
                {
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "confidence": confidence,
                    "now": utc_now(),
                    "id": attachment_id,
                },
            )
            return result.fetchone() is not None

    async def mark_linked(self, attachment_id: str, user_id: str) -> bool:
        now = utc_now()
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    UPDATE ingested_attachments
                    SET link_state = 'linked',
                        linked_by_user_id = :user_id,
                        linked_at = :now,
                        updated_at = :now
                    WHERE id = :id AND link_state = 'link_pending'
                    RETURNING id
                    """
                ),
                {"user_id": user_id, "now": now, "id": attachment_id},
            )
            return result.fetchone() is not None

    async def revert_to_unlinked(self, attachment_id: str) -> bool:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    UPDATE ingested_attachments
                    SET link_state = 'unlinked',
                        linked_entity_type = NULL,
                        linked_entity_id = NULL,
                        link_confidence = NULL,
                        updated_at = :now
                    WHERE id = :id AND link_state = 'link_pending'
                    RETURNING id
                    """
                ),
                {"now": utc_now(), "id": attachment_id},
            )
            return result.fetchone() is not None
