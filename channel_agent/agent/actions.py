"""
Pending action payloads.

A pending action is the only path to a mutating operation. Its payload is
a tagged union keyed on `action`; each member maps onto exactly one
operation in the registry.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from channel_agent.kernel.ids import new_prefixed_id
from channel_agent.operations.models import OperationId
from channel_agent.sessions.models import StoredPendingAction


class PendingActionName(str, Enum):
    CREATE_WORK_ORDER = "create_work_order"
    GENERATE_DATAROOM = "generate_dataroom"
    LINK_ATTACHMENT = "link_attachment"
    RESPOND_TO_REQUEST = "respond_to_request"


class _Payload(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)


class CreateWorkOrderPayload(_Payload):
    action: Literal[PendingActionName.CREATE_WORK_ORDER] = PendingActionName.CREATE_WORK_ORDER
    description: str
    project_id: str | None = None
    site_id: str | None = None
    asset_id: str | None = None


class GenerateDataroomPayload(_Payload):
    action: Literal[PendingActionName.GENERATE_DATAROOM] = PendingActionName.GENERATE_DATAROOM
    project_id: str
    project_name: str | None = None


class LinkAttachmentPayload(_Payload):
    action: Literal[PendingActionName.LINK_ATTACHMENT] = PendingActionName.LINK_ATTACHMENT
    attachment_id: str
    project_id: str
    project_name: str | None = None
    confidence: float | None = None


class RespondToRequestPayload(_Payload):
    action: Literal[PendingActionName.RESPOND_TO_REQUEST] = PendingActionName.RESPOND_TO_REQUEST
    request_id: str
    request_title: str | None = None


PendingActionPayload = Annotated[
    Union[
        CreateWorkOrderPayload,
        GenerateDataroomPayload,
        LinkAttachmentPayload,
        RespondToRequestPayload,
    ],
    Field(discriminator="action"),
]

payload_adapter: TypeAdapter[PendingActionPayload] = TypeAdapter(PendingActionPayload)

ACTION_OPERATIONS: dict[PendingActionName, OperationId] = {
    PendingActionName.CREATE_WORK_ORDER: OperationId.MAINTENANCE_CREATE_WORK_ORDER,
    PendingActionName.GENERATE_DATAROOM: OperationId.DATAROOMS_GENERATE,
    PendingActionName.LINK_ATTACHMENT: OperationId.DOCUMENTS_LINK_ATTACHMENT,
    PendingActionName.RESPOND_TO_REQUEST: OperationId.REQUEST_WORKSPACES_CREATE,
}


class PendingAction(BaseModel):
    id: str
    payload: PendingActionPayload
    prompt: str
    organization_id: str
    created_at: datetime

    @property
    def name(self) -> PendingActionName:
        return self.payload.action

    @classmethod
    def new(cls, payload: PendingActionPayload, prompt: str, organization_id: str, created_at: datetime) -> "PendingAction":
        return cls(
            id=new_prefixed_id("pact"),
            payload=payload,
            prompt=prompt,
            organization_id=organization_id,
            created_at=created_at,
        )

    @classmethod
    def from_stored(cls, stored: StoredPendingAction) -> "PendingAction":
        """Rebuild a typed action; raises pydantic.ValidationError on a corrupt payload."""
        return cls(
            id=stored.id,
            payload=payload_adapter.validate_python(stored.payload),
            prompt=stored.prompt,
            organization_id=stored.organization_id,
            created_at=stored.created_at,
        )

    def to_stored(self) -> StoredPendingAction:
        return StoredPendingAction(
            id=self.id,
            name=self.name.value,
            payload=self.payload.model_dump(mode="json"),
            prompt=self.prompt,
            organization_id=self.organization_id,
            created_at=self.created_at,
        )
