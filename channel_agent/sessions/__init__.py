"""Durable per-thread conversation sessions."""

from channel_agent.sessions.locks import KeyedLocks
from channel_agent.sessions.models import (
    POINTER_FIELDS,
    ContextPointers,
    ConversationSessionState,
    StoredPendingAction,
)
from channel_agent.sessions.store import (
    ConversationSessionStore,
    SqlConversationSessionStore,
    validate_pointer_updates,
)

__all__ = [
    "POINTER_FIELDS",
    "ContextPointers",
    "ConversationSessionState",
    "ConversationSessionStore",
    "KeyedLocks",
    "SqlConversationSessionStore",
    "StoredPendingAction",
    "validate_pointer_updates",
]
