"""General audit logging for sensitive actions."""

from __future__ import annotations

import json
from typing import Any, Protocol

import structlog
from sqlalchemy import text

from channel_agent.db.client import get_db_session
from channel_agent.db.rls import rls_context
from channel_agent.kernel.hashing import sha256_hexdigest
from channel_agent.kernel.ids import new_prefixed_id
from channel_agent.kernel.serialization import json_dumps_canonical, to_jsonable
from channel_agent.kernel.time import utc_now

logger = structlog.get_logger()


class AuditLog(Protocol):
    async def record(
        self,
        organization_id: str,
        action: str,
        actor_type: str,
        actor_id: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        ...


async def record_audit_event(
    organization_id: str,
    action: str,
    actor_type: str,
    actor_id: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append an entry to the organization's hash-chained audit ledger.

    The ledger head row is locked for the duration of the insert so
    sequences stay gap-free under concurrent writers.
    """
    with rls_context(organization_id, is_internal=True):
        async with get_db_session() as session:
            now = utc_now()
            metadata_payload = to_jsonable(metadata or {})

            head = await session.execute(
                text(
                    """
                    SELECT organization_id, last_sequence, last_hash
                    FROM audit_ledger_head
                    WHERE organization_id = :org_id
                    FOR UPDATE
                    """
                ),
                {"org_id": organization_id},
            )
            head_row = head.fetchone()
            if not head_row:
                await session.execute(
                    text(
                        """
                        INSERT INTO audit_ledger_head (
                            organization_id, last_sequence, last_hash, updated_at
                        ) VALUES (:org_id, 0, NULL, :updated_at)
                        """
                    ),
                    {"org_id": organization_id, "updated_at": now},
                )
                last_sequence = 0
                last_hash = None
            else:
                last_sequence = int(head_row.last_sequence or 0)
                last_hash = head_row.last_hash

            sequence = last_sequence + 1
            entry_payload = {
                "organization_id": organization_id,
                "sequence": sequence,
                "action": action,
                "actor_type": actor_type,
                "actor_id": actor_id,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "metadata": metadata_payload,
                "created_at": now.isoformat(),
                "prev_hash": last_hash,
            }
            entry_hash = sha256_hexdigest(json_dumps_canonical(entry_payload).encode("utf-8"))

            await session.execute(
                text(
                    """
                    INSERT INTO audit_log (
                        id, organization_id, action, actor_type, actor_id,
                        resource_type, resource_id, metadata, created_at,
                        sequence, prev_hash, entry_hash
                    ) VALUES (
                        :id, :org_id, :action, :actor_type, :actor_id,
                        :resource_type, :resource_id, CAST(:metadata AS JSONB), :created_at,
                        :sequence, :prev_hash, :entry_hash
                    )
                    """
                ),
                {
                    "id": new_prefixed_id("audit"),
                    "org_id": organization_id,
                    "action": action,
                    "actor_type": actor_type,
                    "actor_id": actor_id,
                    "resource_type": resource_type,
                    "resource_id": resource_id,
                    "metadata": json.dumps(metadata_payload),
                    "created_at": now,
                    "sequence": sequence,
                    "prev_hash": last_hash,
                    "entry_hash": entry_hash,
                },
            )

            await session.execute(
                text(
                    """
                    UPDATE audit_ledger_head
                    SET last_sequence = :sequence,
                        last_hash = :entry_hash,
                        updated_at = :updated_at
                    WHERE organization_id = :org_id
                    """
                ),
                {
                    "sequence": sequence,
                    "entry_hash": entry_hash,
                    "updated_at": now,
                    "org_id": organization_id,
                },
            )


class SqlAuditLog:
    """AuditLog backed by the `audit_log` ledger tables."""

    async def record(
        self,
        organization_id: str,
        action: str,
        actor_type: str,
        actor_id: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await record_audit_event(
            organization_id,
            action,
            actor_type,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=metadata,
        )


async def emit_audit_event(
    audit: AuditLog,
    *,
    organization_id: str,
    action: str,
    actor_id: str | None,
    resource_type: str,
    resource_id: str | None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Emit an audit event without failing the turn on logging errors."""

    try:
        await audit.record(
            organization_id,
            action,
            "user" if actor_id else "system",
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=metadata or {},
        )
    except Exception as exc:
        logger.warning(
            "Failed to emit conversation audit event",
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            error=str(exc),
        )
