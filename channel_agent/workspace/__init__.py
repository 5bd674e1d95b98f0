"""Tenant (workspace) resolution for channel turns."""

from channel_agent.workspace.binder import (
    ResolutionMethod,
    WorkspaceBinder,
    WorkspaceResolution,
    WorkspaceResponses,
)
from channel_agent.workspace.commands import (
    WorkspaceCommand,
    WorkspaceCommandType,
    parse_workspace_command,
)
from channel_agent.workspace.directory import (
    BindingCode,
    SqlWorkspaceDirectory,
    WorkspaceDirectory,
    WorkspaceMembership,
)

__all__ = [
    "BindingCode",
    "ResolutionMethod",
    "SqlWorkspaceDirectory",
    "WorkspaceBinder",
    "WorkspaceCommand",
    "WorkspaceCommandType",
    "WorkspaceDirectory",
    "WorkspaceMembership",
    "WorkspaceResolution",
    "WorkspaceResponses",
    "parse_workspace_command",
]
