"""
Conversation Session Store

Durable per-thread session rows keyed on (user_id, channel, thread_id).
The row carries the context pointers and at most one pending action.

Writes follow two rules:
- `ensure_session` is an idempotent get-or-create (INSERT ... ON CONFLICT).
- `clear_pending_action` is a compare-and-clear, so when two replies race
  on the same pending action exactly one of them wins.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Mapping, Protocol

import structlog
from sqlalchemy import text

from channel_agent.channels.models import Channel
from channel_agent.db.client import get_db_session
from channel_agent.kernel.ids import new_prefixed_id
from channel_agent.kernel.serialization import json_dumps_canonical
from channel_agent.kernel.time import utc_now
from channel_agent.sessions.locks import KeyedLocks
from channel_agent.sessions.models import (
    POINTER_FIELDS,
    ContextPointers,
    ConversationSessionState,
    StoredPendingAction,
)

logger = structlog.get_logger()


class ConversationSessionStore(Protocol):
    async def ensure_session(
        self,
        user_id: str,
        organization_id: str,
        channel: Channel,
        identifier: str,
        thread_id: str,
    ) -> str:
        ...

    async def get_session(self, session_id: str) -> ConversationSessionState | None:
        ...

    async def get_session_by_thread(
        self,
        user_id: str,
        channel: Channel,
        thread_id: str,
    ) -> ConversationSessionState | None:
        ...

    async def update_context(self, session_id: str, updates: Mapping[str, str | None]) -> None:
        ...

    async def set_pending_action(self, session_id: str, action: StoredPendingAction) -> None:
        ...

    async def clear_pending_action(self, session_id: str, expected_action_id: str | None = None) -> bool:
        ...

    def lock(self, session_id: str) -> AbstractAsyncContextManager[None]:
        ...


def validate_pointer_updates(updates: Mapping[str, str | None]) -> dict[str, str | None]:
    unknown = set(updates) - set(POINTER_FIELDS)
    if unknown:
        raise ValueError(f"Unknown context pointer(s): {sorted(unknown)}")
    return dict(updates)


_POINTER_CLEAR_SQL = ", ".join(f"{field} = NULL" for field in POINTER_FIELDS)
_PENDING_CLEAR_SQL = """
    pending_action_id = NULL,
    pending_action = NULL,
    pending_action_payload = NULL,
    pending_action_prompt = NULL,
    pending_action_organization_id = NULL,
    pending_action_created_at = NULL
"""

_SESSION_COLUMNS = f"""
    id, user_id, organization_id, channel, channel_identifier, thread_id,
    {", ".join(POINTER_FIELDS)},
    pending_action_id, pending_action, pending_action_payload,
    pending_action_prompt, pending_action_organization_id, pending_action_created_at,
    created_at, updated_at, last_message_at
"""


def _row_to_state(row: Any) -> ConversationSessionState:
    pending = None
    if row.pending_action_id:
        pending = StoredPendingAction(
            id=row.pending_action_id,
            name=row.pending_action,
            payload=row.pending_action_payload or {},
            prompt=row.pending_action_prompt or "",
            organization_id=row.pending_action_organization_id or row.organization_id,
            created_at=row.pending_action_created_at,
        )
    return ConversationSessionState(
        id=row.id,
        user_id=row.user_id,
        organization_id=row.organization_id,
        channel=Channel(row.channel),
        channel_identifier=row.channel_identifier,
        thread_id=row.thread_id,
        pointers=ContextPointers(**{field: getattr(row, field) for field in POINTER_FIELDS}),
        pending_action=pending,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_message_at=row.last_message_at,
    )


class SqlConversationSessionStore:
    """ConversationSessionStore backed by the `conversation_sessions` table."""

    def __init__(self, locks: KeyedLocks | None = None) -> None:
        self._locks = locks or KeyedLocks()

    def lock(self, session_id: str) -> AbstractAsyncContextManager[None]:
        return self._locks.hold(session_id)

    async def ensure_session(
        self,
        user_id: str,
        organization_id: str,
        channel: Channel,
        identifier: str,
        thread_id: str,
    ) -> str:
        now = utc_now()
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    INSERT INTO conversation_sessions (
                        id, user_id, organization_id, channel, channel_identifier,
                        thread_id, created_at, updated_at, last_message_at
                    ) VALUES (
                        :id, :user_id, :organization_id, :channel, :identifier,
                        :thread_id, :now, :now, :now
                    )
                    ON CONFLICT (user_id, channel, thread_id) DO NOTHING
                    RETURNING id
                    """
                ),
                {
                    "id": new_prefixed_id("sess"),
                    "user_id": user_id,
                    "organization_id": organization_id,
                    "channel": channel.value,
                    "identifier": identifier,
                    "thread_id": thread_id,
                    "now": now,
                },
            )
            created = result.fetchone()
            if created:
                logger.info("Conversation session created", session_id=created.id, channel=channel.value)
                return created.id

            result = await session.execute(
                text(
                    """
                    SELECT id, organization_id
                    FROM conversation_sessions
                    WHERE user_id = :user_id AND channel = :channel AND thread_id = :thread_id
                    FOR UPDATE
                    """
                ),
                {"user_id": user_id, "channel": channel.value, "thread_id": thread_id},
            )
            existing = result.fetchone()
            if existing is None:
                raise RuntimeError("Conversation session vanished after insert conflict")

            if existing.organization_id != organization_id:
                await session.execute(
                    text(
                        f"""
                        UPDATE conversation_sessions
                        SET organization_id = :organization_id,
                            {_POINTER_CLEAR_SQL},
                            {_PENDING_CLEAR_SQL},
                            channel_identifier = :identifier,
                            updated_at = :now,
                            last_message_at = :now
                        WHERE id = :id
                        """
                    ),
                    {"organization_id": organization_id, "identifier": identifier, "now": now, "id": existing.id},
                )
                logger.info(
                    "Conversation session rebound to another organization",
                    session_id=existing.id,
                    organization_id=organization_id,
                )
            else:
                await session.execute(
                    text(
                        """
                        UPDATE conversation_sessions
                        SET channel_identifier = :identifier, last_message_at = :now
                        WHERE id = :id
                        """
                    ),
                    {"identifier": identifier, "now": now, "id": existing.id},
                )
            return existing.id

    async def get_session(self, session_id: str) -> ConversationSessionState | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(f"SELECT {_SESSION_COLUMNS} FROM conversation_sessions WHERE id = :id"),
                {"id": session_id},
            )
            row = result.fetchone()
        return _row_to_state(row) if row else None

    async def get_session_by_thread(
        self,
        user_id: str,
        channel: Channel,
        thread_id: str,
    ) -> ConversationSessionState | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {_SESSION_COLUMNS}
                    FROM conversation_sessions
                    WHERE user_id = :user_id AND channel = :channel AND thread_id = :thread_id
                    """
                ),
                {"user_id": user_id, "channel": channel.value, "thread_id": thread_id},
            )
            row = result.fetchone()
        return _row_to_state(row) if row else None

    async def update_context(self, session_id: str, updates: Mapping[str, str | None]) -> None:
        updates = validate_pointer_updates(updates)
        if not updates:
            return

        # Column names come from POINTER_FIELDS only, never from input.
        assignments = ", ".join(f"{field} = :{field}" for field in updates)
        params: dict[str, Any] = dict(updates)
        params.update({"id": session_id, "now": utc_now()})

        async with get_db_session() as session:
            await session.execute(
                text(
                    f"""
                    UPDATE conversation_sessions
                    SET {assignments}, updated_at = :now
                    WHERE id = :id
                    """
                ),
                params,
            )

    async def set_pending_action(self, session_id: str, action: StoredPendingAction) -> None:
        async with get_db_session() as session:
            await session.execute(
                text(
                    """
                    UPDATE conversation_sessions
                    SET pending_action_id = :action_id,
                        pending_action = :name,
                        pending_action_payload = CAST(:payload AS JSON),
                        pending_action_prompt = :prompt,
                        pending_action_organization_id = :organization_id,
                        pending_action_created_at = :created_at,
                        updated_at = :now
                    WHERE id = :id
                    """
                ),
                {
                    "action_id": action.id,
                    "name": action.name,
                    "payload": json_dumps_canonical(action.payload),
                    "prompt": action.prompt,
                    "organization_id": action.organization_id,
                    "created_at": action.created_at,
                    "now": utc_now(),
                    "id": session_id,
                },
            )
        logger.info("Pending action stored", session_id=session_id, action=action.name, action_id=action.id)

    async def clear_pending_action(self, session_id: str, expected_action_id: str | None = None) -> bool:
        condition = "pending_action_id IS NOT NULL"
        params: dict[str, Any] = {"id": session_id, "now": utc_now()}
        if expected_action_id is not None:
            condition = "pending_action_id = :expected_action_id"
            params["expected_action_id"] = expected_action_id

        async with get_db_session() as session:
            result = await session.execute(
                text(
                    f"""
                    UPDATE conversation_sessions
                    SET {_PENDING_CLEAR_SQL}, updated_at = :now
                    WHERE id = :id AND {condition}
                    RETURNING id
                    """
                ),
                params,
            )
            return result.fetchone() is not None
