"""Prompt for the intent classifier."""

from __future__ import annotations

INTENT_CATALOGUE: dict[str, str] = {
    "ASK_STATUS": "Asking about project, dataroom or document status",
    "SEARCH_DOCS": "Looking for documents",
    "UPLOAD_DOC": "Sending a document",
    "LINK_DOC": "Linking a document or the last attachment to a project",
    "EXTRACT_FIELDS": "Extracting data fields from a document",
    "GENERATE_DATAROOM": "Creating or populating a dataroom",
    "CREATE_WORK_ORDER": "Creating a maintenance work order",
    "SUMMARIZE": "Requesting an activity summary",
    "LIST_REQUESTS": "Listing incoming information requests",
    "VIEW_REQUEST": "Viewing one information request",
    "RESPOND_TO_REQUEST": "Starting a response to an information request",
    "CREATE_REQUEST": "Creating a new information request",
    "CONFIRM_ACTION": "Confirming a pending action",
    "CANCEL_ACTION": "Cancelling a pending action",
    "UNKNOWN": "Cannot determine intent",
}

_ENTITY_FIELDS = """\
- project_id, site_id, asset_id, document_id, dataroom_id, request_id: id string or null
- search_query: string or null (SEARCH_DOCS)
- description: string or null (CREATE_WORK_ORDER, the work to be done)
- status: string or null (LIST_REQUESTS)
- fields: list of field names (EXTRACT_FIELDS)"""


def build_system_prompt(context_summary: str, product_name: str) -> str:
    intents = "\n".join(f"- {name}: {description}" for name, description in INTENT_CATALOGUE.items())
    return f"""You are an intent classifier for {product_name}, an asset management platform.

Current context:
{context_summary}

Classify the user's message into exactly one of these intents:
{intents}

Resolve references using the context:
- "this" / "that" refers to the last referenced document or attachment
- "the project" refers to the last referenced project
- "here" / "there" refers to the last referenced site

Respond ONLY with a JSON object containing:
- intent: one of the intent names above
- confidence: number between 0.0 and 1.0
and any of these entity fields that apply:
{_ENTITY_FIELDS}"""
