"""
Workspace directory: memberships, per-channel preferences, binding codes
and the switch log.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

import structlog
from sqlalchemy import text

from channel_agent.channels.models import Channel
from channel_agent.db.client import get_db_session
from channel_agent.kernel.ids import new_binding_code, new_prefixed_id
from channel_agent.kernel.time import utc_now

logger = structlog.get_logger()


@dataclass(frozen=True)
class WorkspaceMembership:
    organization_id: str
    role: str


@dataclass(frozen=True)
class BindingCode:
    code: str
    user_id: str
    organization_id: str
    channel: Channel | None
    expires_at: datetime
    used_at: datetime | None = None


class WorkspaceDirectory(Protocol):
    async def get_active_role(self, user_id: str, organization_id: str) -> str | None:
        ...

    async def list_active_memberships(self, user_id: str) -> list[WorkspaceMembership]:
        ...

    async def get_channel_default(self, user_id: str, channel: Channel) -> str | None:
        ...

    async def get_binding_code(self, code: str) -> BindingCode | None:
        ...

    async def mark_binding_code_used(self, code: str, channel: Channel, identifier: str) -> bool:
        ...

    async def log_switch(
        self,
        user_id: str,
        from_organization_id: str | None,
        to_organization_id: str,
        channel: Channel,
        method: str,
    ) -> None:
        ...


# Active membership in an active organization.
_ACTIVE_MEMBERSHIP_SQL = """
    FROM organization_memberships m
    JOIN organizations o ON o.id = m.organization_id
    WHERE m.user_id = :user_id
      AND m.status = 'active'
      AND o.status = 'active'
"""


class SqlWorkspaceDirectory:
    async def get_active_role(self, user_id: str, organization_id: str) -> str | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT m.role
                    {_ACTIVE_MEMBERSHIP_SQL}
                      AND m.organization_id = :organization_id
                    """
                ),
                {"user_id": user_id, "organization_id": organization_id},
            )
            row = result.fetchone()
        return row.role if row else None

    async def list_active_memberships(self, user_id: str) -> list[WorkspaceMembership]:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT m.organization_id, m.role
                    {_ACTIVE_MEMBERSHIP_SQL}
                    ORDER BY m.created_at
                    """
                ),
                {"user_id": user_id},
            )
            rows = result.fetchall()
        return [WorkspaceMembership(organization_id=row.organization_id, role=row.role) for row in rows]

    async def get_channel_default(self, user_id: str, channel: Channel) -> str | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT default_organization_id
                    FROM workspace_preferences
                    WHERE user_id = :user_id AND channel = :channel
                    """
                ),
                {"user_id": user_id, "channel": channel.value},
            )
            row = result.fetchone()
        return row.default_organization_id if row else None

    async def get_binding_code(self, code: str) -> BindingCode | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT code, user_id, organization_id, channel, expires_at, used_at
                    FROM workspace_binding_codes
                    WHERE code = :code
                    """
                ),
                {"code": code},
            )
            row = result.fetchone()
        if not row:
            return None
        return BindingCode(
            code=row.code,
            user_id=row.user_id,
            organization_id=row.organization_id,
            channel=Channel(row.channel) if row.channel else None,
            expires_at=row.expires_at,
            used_at=row.used_at,
        )

    async def mark_binding_code_used(self, code: str, channel: Channel, identifier: str) -> bool:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    UPDATE workspace_binding_codes
                    SET used_at = :now, used_channel = :channel, used_identifier = :identifier
                    WHERE code = :code AND used_at IS NULL
                    RETURNING code
                    """
                ),
                {"now": utc_now(), "channel": channel.value, "identifier": identifier, "code": code},
            )
            return result.fetchone() is not None

    async def create_binding_code(
        self,
        user_id: str,
        organization_id: str,
        ttl: timedelta,
        channel: Channel | None = None,
    ) -> BindingCode:
        now = utc_now()
        expires_at = now + ttl
        async with get_db_session() as session:
            # Expired codes are reclaimed so the six-digit space does not fill up.
            await session.execute(
                text("DELETE FROM workspace_binding_codes WHERE expires_at < :now"),
                {"now": now},
            )
            while True:
                code = new_binding_code()
                result = await session.execute(
                    text(
                        """
                        INSERT INTO workspace_binding_codes (
                            code, user_id, organization_id, channel, expires_at, created_at
                        ) VALUES (
                            :code, :user_id, :organization_id, :channel, :expires_at, :now
                        )
                        ON CONFLICT (code) DO NOTHING
                        RETURNING code
                        """
                    ),
                    {
                        "code": code,
                        "user_id": user_id,
                        "organization_id": organization_id,
                        "channel": channel.value if channel else None,
                        "expires_at": expires_at,
                        "now": now,
                    },
                )
                if result.fetchone() is not None:
                    break

        logger.info("Workspace binding code issued", user_id=user_id, channel=channel.value if channel else None)
        return BindingCode(
            code=code,
            user_id=user_id,
            organization_id=organization_id,
            channel=channel,
            expires_at=expires_at,
        )

    async def log_switch(
        self,
        user_id: str,
        from_organization_id: str | None,
        to_organization_id: str,
        channel: Channel,
        method: str,
    ) -> None:
        async with get_db_session() as session:
            await session.execute(
                text(
                    """
                    INSERT INTO workspace_switch_log (
                        id, user_id, from_organization_id, to_organization_id,
                        channel, switch_method, created_at
                    ) VALUES (
                        :id, :user_id, :from_org, :to_org, :channel, :method, :now
                    )
                    """
                ),
                {
                    "id": new_prefixed_id("wsw"),
                    "user_id": user_id,
                    "from_org": from_organization_id,
                    "to_org": to_organization_id,
                    "channel": channel.value,
                    "method": method,
                    "now": utc_now(),
                },
            )
