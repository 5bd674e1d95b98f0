"""
Per-turn conversation context.

`ConversationContext` is the session as loaded at the start of a turn.
`TurnState` collects pointer changes made while handling the message; they
are written back once, at the end of a successful turn.
`ContextResolver` re-validates pointers and entity hints through the RBAC
bridge, so a pointer to something deleted or no longer visible is never
trusted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from channel_agent.channels.models import Channel
from channel_agent.operations.bridge import RBACExecutionBridge
from channel_agent.operations.models import ErrorKind, OperationId, OperationResult
from channel_agent.sessions.models import ContextPointers, StoredPendingAction

logger = structlog.get_logger()

# Pointer -> (operation that re-validates it, input key, summary label)
POINTER_VALIDATION: dict[str, tuple[OperationId, str, str]] = {
    "last_project_id": (OperationId.PROJECTS_GET, "project_id", "Last referenced project"),
    "last_site_id": (OperationId.SITES_GET, "site_id", "Last referenced site"),
    "last_asset_id": (OperationId.ASSETS_GET, "asset_id", "Last referenced asset"),
    "last_document_id": (OperationId.DOCUMENTS_GET, "document_id", "Last referenced document"),
    "active_dataroom_id": (OperationId.DATAROOMS_GET, "dataroom_id", "Active dataroom"),
}

# Failures that mean the pointer is no longer usable, as opposed to transient ones.
_STALE_KINDS = {ErrorKind.NOT_FOUND, ErrorKind.FORBIDDEN, ErrorKind.UNAUTHORIZED}


@dataclass
class ConversationContext:
    session_id: str
    user_id: str
    organization_id: str
    role: str
    channel: Channel
    identifier: str
    thread_id: str
    pointers: ContextPointers = field(default_factory=ContextPointers)
    pending_action: StoredPendingAction | None = None


@dataclass
class TurnState:
    pointer_updates: dict[str, str | None] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)
    validated: dict[tuple[OperationId, str], OperationResult] = field(default_factory=dict)

    def set_pointer(self, name: str, value: str | None) -> None:
        self.pointer_updates[name] = value

    def pointer(self, context: ConversationContext, name: str) -> str | None:
        if name in self.pointer_updates:
            return self.pointer_updates[name]
        return getattr(context.pointers, name)


def entity_name(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        for key in ("name", "title"):
            if data.get(key):
                return str(data[key])
    return fallback


class ContextResolver:
    def __init__(self, bridge: RBACExecutionBridge) -> None:
        self._bridge = bridge

    async def lookup(
        self,
        context: ConversationContext,
        turn: TurnState,
        operation: OperationId,
        input_key: str,
        entity_id: str,
    ) -> OperationResult:
        """Fetch one entity through the bridge, cached for the rest of the turn."""
        cache_key = (operation, entity_id)
        if cache_key not in turn.validated:
            turn.validated[cache_key] = await self._bridge.execute_read(
                context.user_id,
                context.organization_id,
                operation,
                {input_key: entity_id},
            )
        return turn.validated[cache_key]

    async def validated_pointer(
        self,
        context: ConversationContext,
        turn: TurnState,
        name: str,
    ) -> tuple[str, Any] | None:
        """Return (id, entity) for a pointer that still resolves, else None.

        Pointers that no longer resolve are cleared at the end of the turn.
        """
        value = turn.pointer(context, name)
        if not value:
            return None
        operation, input_key, _ = POINTER_VALIDATION[name]
        result = await self.lookup(context, turn, operation, input_key, value)
        if result.success:
            return value, result.data
        if result.error_kind in _STALE_KINDS:
            logger.info("Clearing stale context pointer", pointer=name, error_kind=result.error_kind.value)
            turn.set_pointer(name, None)
        return None

    async def resolve_hint(
        self,
        context: ConversationContext,
        turn: TurnState,
        hint: str | None,
        pointer_name: str,
    ) -> tuple[tuple[str, Any] | None, OperationResult | None]:
        """Resolve an entity from a classifier hint, falling back to the pointer.

        Returns ((id, entity) | None, failed_result | None). A hint that fails
        validation is reported back rather than silently replaced by the
        pointer, so the user is not acted on for something they did not name.
        """
        operation, input_key, _ = POINTER_VALIDATION[pointer_name]
        if hint:
            result = await self.lookup(context, turn, operation, input_key, hint)
            if not result.success:
                return None, result
            turn.set_pointer(pointer_name, hint)
            return (hint, result.data), None
        return await self.validated_pointer(context, turn, pointer_name), None

    async def summary(self, context: ConversationContext, turn: TurnState) -> str:
        parts: list[str] = []
        for name, (_, _, label) in POINTER_VALIDATION.items():
            resolved = await self.validated_pointer(context, turn, name)
            if resolved is None:
                continue
            entity_id, data = resolved
            parts.append(f'{label}: "{entity_name(data, entity_id)}" (ID: {entity_id})')

        attachment_id = turn.pointer(context, "last_attachment_id")
        if attachment_id:
            parts.append(f"Last received attachment ID: {attachment_id}")

        if not parts:
            parts.append("No prior context established.")
        return "\n".join(parts)
