"""Conversational agent: turn pipeline, confirmation gate and intent handlers."""

from channel_agent.agent.confirmation import ConfirmationGate
from channel_agent.agent.factory import AgentRuntime, build_agent_runtime
from channel_agent.agent.handler import ConversationalAgent

__all__ = [
    "AgentRuntime",
    "ConfirmationGate",
    "ConversationalAgent",
    "build_agent_runtime",
]
