"""
Operation types shared by the registry, the bridge and its callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from channel_agent.operations.permissions import Permission


class OperationId(str, Enum):
    PROJECTS_GET = "projects.get"
    SITES_GET = "sites.get"
    ASSETS_GET = "assets.get"
    DOCUMENTS_GET = "documents.get"
    DOCUMENTS_SEARCH = "documents.search"
    DATAROOMS_GET = "datarooms.get"
    DATAROOMS_GET_GAPS = "datarooms.getGaps"
    ACTIVITY_SUMMARY = "activity.getSummary"
    REQUESTS_LIST_INCOMING = "requests.listIncoming"
    REQUESTS_GET = "requests.get"
    REQUEST_WORKSPACES_VALIDATE = "requests.workspaces.validate"

    MAINTENANCE_CREATE_WORK_ORDER = "maintenance.createWorkOrder"
    DATAROOMS_GENERATE = "datarooms.generate"
    DOCUMENTS_LINK_ATTACHMENT = "documents.linkAttachment"
    REQUEST_WORKSPACES_CREATE = "requests.workspaces.create"


@dataclass(frozen=True)
class OperationSpec:
    path: str
    permission: Permission
    mutating: bool = False


@dataclass(frozen=True)
class ScopedCaller:
    """The user an operation runs as, reloaded from storage on every call."""

    user_id: str
    organization_id: str
    role: str
    email: str | None = None
    name: str | None = None


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    FAILED = "failed"


class OperationResult(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, kind: ErrorKind, message: str) -> "OperationResult":
        return cls(success=False, error=message, error_kind=kind)
