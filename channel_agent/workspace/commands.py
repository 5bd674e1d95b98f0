"""Parsing of chat-level workspace commands."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_BIND_CODE_RE = re.compile(r"^(?:bind\s+code\s+|code\s+)(\d{6})$", re.IGNORECASE)
_WORKSPACE_STATUS_RE = re.compile(r"^/workspace$", re.IGNORECASE)
_SWITCH_WORKSPACE_RE = re.compile(r"^switch\s+workspace$", re.IGNORECASE)


class WorkspaceCommandType(str, Enum):
    BIND_CODE = "bind_code"
    WORKSPACE_STATUS = "workspace_status"
    SWITCH_WORKSPACE = "switch_workspace"


@dataclass(frozen=True)
class WorkspaceCommand:
    type: WorkspaceCommandType
    code: str | None = None


def parse_workspace_command(text: str) -> WorkspaceCommand | None:
    trimmed = text.strip()

    match = _BIND_CODE_RE.match(trimmed)
    if match:
        return WorkspaceCommand(WorkspaceCommandType.BIND_CODE, code=match.group(1))
    if _WORKSPACE_STATUS_RE.match(trimmed):
        return WorkspaceCommand(WorkspaceCommandType.WORKSPACE_STATUS)
    if _SWITCH_WORKSPACE_RE.match(trimmed):
        return WorkspaceCommand(WorkspaceCommandType.SWITCH_WORKSPACE)
    return None
