"""
Operation Registry

Typed map from OperationId to the handler that performs it. Every
operation the agent references must have a handler; `validate()` is called
at startup so a missing one fails the boot, not a conversation.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable

import structlog

from channel_agent.operations.models import OperationId, OperationSpec, ScopedCaller
from channel_agent.operations.permissions import Permission

logger = structlog.get_logger()

OperationHandler = Callable[[ScopedCaller, dict[str, Any]], Awaitable[Any]]


OPERATION_SPECS: dict[OperationId, OperationSpec] = {
    OperationId.PROJECTS_GET: OperationSpec("projects.get", Permission.VIEW_PORTFOLIO),
    OperationId.SITES_GET: OperationSpec("sites.get", Permission.VIEW_PORTFOLIO),
    OperationId.ASSETS_GET: OperationSpec("assets.get", Permission.VIEW_PORTFOLIO),
    OperationId.DOCUMENTS_GET: OperationSpec("documents.get", Permission.VIEW_DOCUMENTS),
    OperationId.DOCUMENTS_SEARCH: OperationSpec("documents.search", Permission.VIEW_DOCUMENTS),
    OperationId.DATAROOMS_GET: OperationSpec("datarooms.get", Permission.VIEW_DOCUMENTS),
    OperationId.DATAROOMS_GET_GAPS: OperationSpec("datarooms.getGaps", Permission.VIEW_DOCUMENTS),
    OperationId.ACTIVITY_SUMMARY: OperationSpec("activity.getSummary", Permission.VIEW_PORTFOLIO),
    OperationId.REQUESTS_LIST_INCOMING: OperationSpec("requests.listIncoming", Permission.VIEW_REQUESTS),
    OperationId.REQUESTS_GET: OperationSpec("requests.get", Permission.VIEW_REQUESTS),
    OperationId.REQUEST_WORKSPACES_VALIDATE: OperationSpec(
        "requests.workspaces.validate", Permission.VIEW_REQUESTS
    ),
    OperationId.MAINTENANCE_CREATE_WORK_ORDER: OperationSpec(
        "maintenance.createWorkOrder", Permission.MANAGE_WORK_ORDERS, mutating=True
    ),
    OperationId.DATAROOMS_GENERATE: OperationSpec(
        "datarooms.generate", Permission.GENERATE_DATAROOMS, mutating=True
    ),
    OperationId.DOCUMENTS_LINK_ATTACHMENT: OperationSpec(
        "documents.linkAttachment", Permission.LINK_DOCUMENTS, mutating=True
    ),
    OperationId.REQUEST_WORKSPACES_CREATE: OperationSpec(
        "requests.workspaces.create", Permission.RESPOND_TO_REQUESTS, mutating=True
    ),
}


class OperationRegistryError(RuntimeError):
    pass


class OperationRegistry:
    def __init__(self, specs: dict[OperationId, OperationSpec] | None = None) -> None:
        self._specs = dict(specs or OPERATION_SPECS)
        self._handlers: dict[OperationId, OperationHandler] = {}

    def register(self, operation: OperationId, handler: OperationHandler) -> None:
        if operation not in self._specs:
            raise OperationRegistryError(f"No spec for operation {operation.value}")
        self._handlers[operation] = handler

    def spec(self, operation: OperationId) -> OperationSpec:
        return self._specs[operation]

    def handler(self, operation: OperationId) -> OperationHandler:
        try:
            return self._handlers[operation]
        except KeyError:
            raise OperationRegistryError(f"No handler registered for {operation.value}") from None

    def operations(self) -> Iterable[OperationId]:
        return self._specs.keys()

    def validate(self, required: Iterable[OperationId] | None = None) -> None:
        """Raise if any required operation (default: all) has no handler."""
        required = list(required if required is not None else self._specs)
        missing = sorted(op.value for op in required if op not in self._handlers)
        if missing:
            raise OperationRegistryError(f"Operations without handlers: {', '.join(missing)}")
        logger.info("Operation registry validated", operations=len(required))
