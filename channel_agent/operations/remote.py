"""
Remote operation backend.

Every registered operation is a POST to the business backend at
`{operations_backend_url}/internal/operations/{path}` with the scoped
caller in a signed bearer token. Read operations are retried on transient
failures; mutating operations are sent once.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from channel_agent.config import get_settings
from channel_agent.kernel.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from channel_agent.kernel.http.client import request_with_retry
from channel_agent.operations.internal_jwt import create_operation_jwt
from channel_agent.operations.models import OperationId, OperationSpec, ScopedCaller
from channel_agent.operations.registry import OperationHandler, OperationRegistry

logger = structlog.get_logger()


def _raise_for_status(response: httpx.Response, path: str) -> None:
    status = response.status_code
    if status < 400:
        return
    meta = {"path": path, "status_code": status}
    if status == 401:
        raise UnauthorizedError(meta=meta)
    if status == 403:
        raise ForbiddenError(meta=meta)
    if status == 404:
        raise NotFoundError(meta=meta)
    if status in (400, 422):
        raise ValidationError(meta=meta)
    raise UpstreamError(meta=meta)


class RemoteOperationBackend:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str | None = None,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.operations_backend_url).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=settings.operations_timeout_seconds)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(self, spec: OperationSpec, caller: ScopedCaller, payload: dict[str, Any]) -> Any:
        url = f"{self._base_url}/internal/operations/{spec.path}"
        headers = {
            "Authorization": f"Bearer {create_operation_jwt(caller)}",
            "Content-Type": "application/json",
        }
        try:
            response = await request_with_retry(
                self._client,
                "POST",
                url,
                json={"input": payload},
                headers=headers,
                max_attempts=1 if spec.mutating else 3,
            )
        except httpx.HTTPError as exc:
            logger.warning("Operations backend unreachable", path=spec.path, error=str(exc))
            raise UpstreamError(message="Operations backend unreachable", meta={"path": spec.path}) from exc

        _raise_for_status(response, spec.path)

        if not response.content:
            return None
        body = response.json()
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def handler_for(self, operation: OperationId, spec: OperationSpec) -> OperationHandler:
        async def _handler(caller: ScopedCaller, payload: dict[str, Any]) -> Any:
            return await self.call(spec, caller, payload)

        _handler.__name__ = f"remote_{operation.name.lower()}"
        return _handler

    def register_all(self, registry: OperationRegistry) -> None:
        for operation in registry.operations():
            registry.register(operation, self.handler_for(operation, registry.spec(operation)))
