"""Database models."""

from channel_agent.db.models.channels import (
    Base,
    ChannelIdentity,
    QuarantinedInbound,
)
from channel_agent.db.models.tenancy import (
    Organization,
    User,
    OrganizationMembership,
)
from channel_agent.db.models.sessions import ConversationSession
from channel_agent.db.models.attachments import IngestedAttachment
from channel_agent.db.models.workspace import (
    WorkspaceBindingCode,
    WorkspacePreference,
    WorkspaceSwitchLog,
)
from channel_agent.db.models.audit import AuditLog, AuditLedgerHead

__all__ = [
    "Base",
    "ChannelIdentity",
    "QuarantinedInbound",
    "Organization",
    "User",
    "OrganizationMembership",
    "ConversationSession",
    "IngestedAttachment",
    "WorkspaceBindingCode",
    "WorkspacePreference",
    "WorkspaceSwitchLog",
    "AuditLog",
    "AuditLedgerHead",
]
