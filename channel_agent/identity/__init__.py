"""Channel identity resolution and quarantine."""

from channel_agent.identity.directory import IdentityDirectory, SqlIdentityDirectory
from channel_agent.identity.resolver import IdentityResolver
from channel_agent.identity.types import (
    ChannelIdentity,
    IdentityStatus,
    IdentityType,
    QuarantineRecord,
    identity_type_for_channel,
)

__all__ = [
    "ChannelIdentity",
    "IdentityDirectory",
    "IdentityResolver",
    "IdentityStatus",
    "IdentityType",
    "QuarantineRecord",
    "SqlIdentityDirectory",
    "identity_type_for_channel",
]
