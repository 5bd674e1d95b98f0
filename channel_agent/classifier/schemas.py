"""
Intent classification schemas.

The classifier's output is a tagged union keyed on `intent`. Every member
carries its own entity hints; ids are coerced to strings because models
happily emit them as numbers. Hints are never trusted: the RBAC bridge
re-validates each one before it is used.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class IntentName(str, Enum):
    ASK_STATUS = "ASK_STATUS"
    SEARCH_DOCS = "SEARCH_DOCS"
    UPLOAD_DOC = "UPLOAD_DOC"
    LINK_DOC = "LINK_DOC"
    EXTRACT_FIELDS = "EXTRACT_FIELDS"
    GENERATE_DATAROOM = "GENERATE_DATAROOM"
    CREATE_WORK_ORDER = "CREATE_WORK_ORDER"
    SUMMARIZE = "SUMMARIZE"
    LIST_REQUESTS = "LIST_REQUESTS"
    VIEW_REQUEST = "VIEW_REQUEST"
    RESPOND_TO_REQUEST = "RESPOND_TO_REQUEST"
    CREATE_REQUEST = "CREATE_REQUEST"
    CONFIRM_ACTION = "CONFIRM_ACTION"
    CANCEL_ACTION = "CANCEL_ACTION"
    UNKNOWN = "UNKNOWN"


class _IntentBase(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AskStatusIntent(_IntentBase):
    intent: Literal[IntentName.ASK_STATUS] = IntentName.ASK_STATUS
    project_id: str | None = None
    dataroom_id: str | None = None


class SearchDocsIntent(_IntentBase):
    intent: Literal[IntentName.SEARCH_DOCS] = IntentName.SEARCH_DOCS
    search_query: str | None = None
    project_id: str | None = None


class UploadDocIntent(_IntentBase):
    intent: Literal[IntentName.UPLOAD_DOC] = IntentName.UPLOAD_DOC
    project_id: str | None = None


class LinkDocIntent(_IntentBase):
    intent: Literal[IntentName.LINK_DOC] = IntentName.LINK_DOC
    project_id: str | None = None
    document_id: str | None = None


class ExtractFieldsIntent(_IntentBase):
    intent: Literal[IntentName.EXTRACT_FIELDS] = IntentName.EXTRACT_FIELDS
    document_id: str | None = None
    fields: list[str] = Field(default_factory=list)


class GenerateDataroomIntent(_IntentBase):
    intent: Literal[IntentName.GENERATE_DATAROOM] = IntentName.GENERATE_DATAROOM
    project_id: str | None = None


class CreateWorkOrderIntent(_IntentBase):
    intent: Literal[IntentName.CREATE_WORK_ORDER] = IntentName.CREATE_WORK_ORDER
    description: str | None = None
    project_id: str | None = None
    site_id: str | None = None
    asset_id: str | None = None


class SummarizeIntent(_IntentBase):
    intent: Literal[IntentName.SUMMARIZE] = IntentName.SUMMARIZE
    project_id: str | None = None


class ListRequestsIntent(_IntentBase):
    intent: Literal[IntentName.LIST_REQUESTS] = IntentName.LIST_REQUESTS
    status: str | None = None


class ViewRequestIntent(_IntentBase):
    intent: Literal[IntentName.VIEW_REQUEST] = IntentName.VIEW_REQUEST
    request_id: str | None = None


class RespondToRequestIntent(_IntentBase):
    intent: Literal[IntentName.RESPOND_TO_REQUEST] = IntentName.RESPOND_TO_REQUEST
    request_id: str | None = None


class CreateRequestIntent(_IntentBase):
    intent: Literal[IntentName.CREATE_REQUEST] = IntentName.CREATE_REQUEST


class ConfirmActionIntent(_IntentBase):
    intent: Literal[IntentName.CONFIRM_ACTION] = IntentName.CONFIRM_ACTION


class CancelActionIntent(_IntentBase):
    intent: Literal[IntentName.CANCEL_ACTION] = IntentName.CANCEL_ACTION


class UnknownIntent(_IntentBase):
    intent: Literal[IntentName.UNKNOWN] = IntentName.UNKNOWN


IntentClassification = Annotated[
    Union[
        AskStatusIntent,
        SearchDocsIntent,
        UploadDocIntent,
        LinkDocIntent,
        ExtractFieldsIntent,
        GenerateDataroomIntent,
        CreateWorkOrderIntent,
        SummarizeIntent,
        ListRequestsIntent,
        ViewRequestIntent,
        RespondToRequestIntent,
        CreateRequestIntent,
        ConfirmActionIntent,
        CancelActionIntent,
        UnknownIntent,
    ],
    Field(discriminator="intent"),
]

classification_adapter: TypeAdapter[IntentClassification] = TypeAdapter(IntentClassification)
