"""Reloads the caller's user record and role for every operation."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import text

from channel_agent.db.client import get_db_session
from channel_agent.operations.models import ScopedCaller


class UserDirectory(Protocol):
    async def load_caller(self, user_id: str, organization_id: str) -> ScopedCaller | None:
        ...


class SqlUserDirectory:
    async def load_caller(self, user_id: str, organization_id: str) -> ScopedCaller | None:
        async with get_db_session() as session:
            result = await session.execute(
                text(
                    """
                    SELECT u.id, u.email, u.name, m.role
                    FROM users u
                    JOIN organization_memberships m ON m.user_id = u.id
                    JOIN organizations o ON o.id = m.organization_id
                    WHERE u.id = :user_id
                      AND u.status = 'active'
                      AND m.organization_id = :organization_id
                      AND m.status = 'active'
                      AND o.status = 'active'
                    """
                ),
                {"user_id": user_id, "organization_id": organization_id},
            )
            row = result.fetchone()
        if not row:
            return None
        return ScopedCaller(
            user_id=row.id,
            organization_id=organization_id,
            role=row.role,
            email=row.email,
            name=row.name,
        )
