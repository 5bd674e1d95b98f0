"""Channel message models and provider payload normalisation."""

from channel_agent.channels.models import (
    AgentResponse,
    Channel,
    InboundMessage,
    MediaReference,
    MessageType,
)

__all__ = [
    "AgentResponse",
    "Channel",
    "InboundMessage",
    "MediaReference",
    "MessageType",
]
