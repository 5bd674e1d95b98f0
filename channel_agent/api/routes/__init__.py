"""API route modules."""

from channel_agent.api.routes import channels, health, identities

__all__ = ["channels", "health", "identities"]
