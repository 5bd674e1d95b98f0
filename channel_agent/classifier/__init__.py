"""Intent classification boundary."""

from channel_agent.classifier.schemas import (
    AskStatusIntent,
    CancelActionIntent,
    ConfirmActionIntent,
    CreateRequestIntent,
    CreateWorkOrderIntent,
    ExtractFieldsIntent,
    GenerateDataroomIntent,
    IntentClassification,
    IntentName,
    LinkDocIntent,
    ListRequestsIntent,
    RespondToRequestIntent,
    SearchDocsIntent,
    SummarizeIntent,
    UnknownIntent,
    UploadDocIntent,
    ViewRequestIntent,
)
from channel_agent.classifier.service import (
    GuardedIntentClassifier,
    IntentClassifier,
    LLMIntentClassifier,
    parse_classification,
)

__all__ = [
    "AskStatusIntent",
    "CancelActionIntent",
    "ConfirmActionIntent",
    "CreateRequestIntent",
    "CreateWorkOrderIntent",
    "ExtractFieldsIntent",
    "GenerateDataroomIntent",
    "GuardedIntentClassifier",
    "IntentClassification",
    "IntentClassifier",
    "IntentName",
    "LLMIntentClassifier",
    "LinkDocIntent",
    "ListRequestsIntent",
    "RespondToRequestIntent",
    "SearchDocsIntent",
    "SummarizeIntent",
    "UnknownIntent",
    "UploadDocIntent",
    "ViewRequestIntent",
    "parse_classification",
]
