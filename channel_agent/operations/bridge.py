"""
RBAC Execution Bridge

Runs a registered operation as the real user behind a channel message.
The user and their role are reloaded on every call, the role is checked
against the permission matrix, and any failure is reduced to a short,
safe sentence. Raw errors and ids stay in the logs.
"""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from channel_agent.kernel.errors import (
    ChannelAgentError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from channel_agent.monitoring import get_metrics
from channel_agent.operations.models import ErrorKind, OperationId, OperationResult
from channel_agent.operations.permissions import has_permission
from channel_agent.operations.registry import OperationRegistry
from channel_agent.operations.users import UserDirectory

logger = structlog.get_logger()

SAFE_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.UNAUTHORIZED: "Authentication required.",
    ErrorKind.FORBIDDEN: "You don't have permission to do that.",
    ErrorKind.NOT_FOUND: "I couldn't find that.",
    ErrorKind.INVALID: "I couldn't do that with the details given.",
    ErrorKind.FAILED: "Something went wrong while doing that. Please try again later.",
}


def _kind_for(exc: Exception) -> ErrorKind:
    if isinstance(exc, UnauthorizedError):
        return ErrorKind.UNAUTHORIZED
    if isinstance(exc, ForbiddenError):
        return ErrorKind.FORBIDDEN
    if isinstance(exc, NotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(exc, ValidationError):
        return ErrorKind.INVALID
    return ErrorKind.FAILED


class MutatingOperationRefused(RuntimeError):
    """A mutating operation was requested outside the confirmation gate."""


class RBACExecutionBridge:
    def __init__(self, registry: OperationRegistry, users: UserDirectory) -> None:
        self._registry = registry
        self._users = users

    @property
    def registry(self) -> OperationRegistry:
        return self._registry

    async def execute_read(
        self,
        user_id: str,
        organization_id: str,
        operation: OperationId,
        input: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """Execute a read-only operation; mutating operations are refused."""
        if self._registry.spec(operation).mutating:
            raise MutatingOperationRefused(operation.value)
        return await self.execute(user_id, organization_id, operation, input)

    async def execute(
        self,
        user_id: str,
        organization_id: str,
        operation: OperationId,
        input: Mapping[str, Any] | None = None,
    ) -> OperationResult:
        metrics = get_metrics()
        spec = self._registry.spec(operation)
        handler = self._registry.handler(operation)

        caller = await self._users.load_caller(user_id, organization_id)
        if caller is None:
            logger.info("Operation refused: caller has no active membership", operation=operation.value)
            metrics.track_operation(operation.value, ErrorKind.UNAUTHORIZED.value)
            return OperationResult.failed(ErrorKind.UNAUTHORIZED, SAFE_MESSAGES[ErrorKind.UNAUTHORIZED])

        if not has_permission(caller.role, spec.permission):
            logger.info(
                "Operation refused: role lacks permission",
                operation=operation.value,
                role=caller.role,
                permission=spec.permission.value,
            )
            metrics.track_operation(operation.value, ErrorKind.FORBIDDEN.value)
            return OperationResult.failed(ErrorKind.FORBIDDEN, SAFE_MESSAGES[ErrorKind.FORBIDDEN])

        try:
            data = await handler(caller, dict(input or {}))
        except ChannelAgentError as exc:
            kind = _kind_for(exc)
            logger.warning(
                "Operation failed",
                operation=operation.value,
                code=exc.code,
                error_kind=kind.value,
            )
            metrics.track_operation(operation.value, kind.value)
            return OperationResult.failed(kind, SAFE_MESSAGES[kind])
        except Exception:
            logger.exception("Operation raised unexpectedly", operation=operation.value)
            metrics.track_operation(operation.value, ErrorKind.FAILED.value)
            return OperationResult.failed(ErrorKind.FAILED, SAFE_MESSAGES[ErrorKind.FAILED])

        metrics.track_operation(operation.value, "success")
        return OperationResult.ok(data)
