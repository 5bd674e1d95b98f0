"""
Intent handlers.

Read intents call the RBAC bridge directly (read-only operations only).
Mutating intents never call the bridge here; they build a pending action
and hand it to the confirmation gate.
"""

from __future__ import annotations

from typing import Any

import structlog

from channel_agent.agent import responses
from channel_agent.agent.actions import (
    CreateWorkOrderPayload,
    GenerateDataroomPayload,
    RespondToRequestPayload,
)
from channel_agent.agent.attachments import AttachmentIntakeHandler
from channel_agent.agent.confirmation import ConfirmationGate
from channel_agent.agent.context import ContextResolver, ConversationContext, TurnState, entity_name
from channel_agent.channels.models import AgentResponse, InboundMessage
from channel_agent.classifier.schemas import (
    AskStatusIntent,
    CreateWorkOrderIntent,
    GenerateDataroomIntent,
    IntentClassification,
    IntentName,
    LinkDocIntent,
    ListRequestsIntent,
    RespondToRequestIntent,
    SearchDocsIntent,
    SummarizeIntent,
    ViewRequestIntent,
)
from channel_agent.operations.bridge import RBACExecutionBridge
from channel_agent.operations.models import OperationId, OperationResult

logger = structlog.get_logger()


def _items(data: Any, *keys: str) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        for key in keys:
            value = data.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
    return []


def _failed(result: OperationResult) -> AgentResponse:
    return responses.failure(result.error or responses.GENERIC_FAILURE)


class IntentRouter:
    def __init__(
        self,
        bridge: RBACExecutionBridge,
        resolver: ContextResolver,
        gate: ConfirmationGate,
        attachments: AttachmentIntakeHandler,
        *,
        product_name: str,
    ) -> None:
        self._bridge = bridge
        self._resolver = resolver
        self._gate = gate
        self._attachments = attachments
        self._product_name = product_name

    async def handle(
        self,
        context: ConversationContext,
        turn: TurnState,
        classification: IntentClassification,
        message: InboundMessage,
    ) -> AgentResponse:
        intent = classification.intent

        if isinstance(classification, AskStatusIntent):
            return await self._ask_status(context, turn, classification)
        if isinstance(classification, SearchDocsIntent):
            return await self._search_docs(context, turn, classification)
        if isinstance(classification, SummarizeIntent):
            return await self._summarize(context, turn, classification)
        if isinstance(classification, CreateWorkOrderIntent):
            return await self._create_work_order(context, turn, classification, message)
        if isinstance(classification, GenerateDataroomIntent):
            return await self._generate_dataroom(context, turn, classification)
        if isinstance(classification, LinkDocIntent):
            return await self._link_doc(context, turn, classification)
        if isinstance(classification, ListRequestsIntent):
            return await self._list_requests(context, classification)
        if isinstance(classification, ViewRequestIntent):
            return await self._view_request(context, classification)
        if isinstance(classification, RespondToRequestIntent):
            return await self._respond_to_request(context, classification)

        if intent == IntentName.UPLOAD_DOC:
            return responses.reply(responses.SEND_FILE_PROMPT)
        if intent == IntentName.CREATE_REQUEST:
            return responses.create_request_guidance(self._product_name)
        if intent in (IntentName.CONFIRM_ACTION, IntentName.CANCEL_ACTION):
            return responses.reply(responses.NOTHING_PENDING)

        # EXTRACT_FIELDS and UNKNOWN
        return responses.unknown_intent()

    async def _read(self, context: ConversationContext, operation: OperationId, input: dict[str, Any]) -> OperationResult:
        return await self._bridge.execute_read(
            context.user_id,
            context.organization_id,
            operation,
            {key: value for key, value in input.items() if value is not None},
        )

    async def _ask_status(
        self, context: ConversationContext, turn: TurnState, intent: AskStatusIntent
    ) -> AgentResponse:
        project, failed = await self._resolver.resolve_hint(context, turn, intent.project_id, "last_project_id")
        if failed is not None:
            return _failed(failed)
        if project is None:
            return responses.failure("Which project would you like to check the status of?")

        project_id, data = project
        turn.set_pointer("last_project_id", project_id)
        gaps_result = await self._read(context, OperationId.DATAROOMS_GET_GAPS, {"project_id": project_id})
        gaps = _items(gaps_result.data, "gaps") if gaps_result.success else []

        details = data if isinstance(data, dict) else {}
        capacity = details.get("capacity_mw") or details.get("capacity")
        lines = [
            f"**{entity_name(data, 'Project')}** Status:",
            f"• Stage: {details.get('stage') or 'Not set'}",
            f"• Status: {details.get('status') or 'Active'}",
            f"• Capacity: {capacity if capacity is not None else 'N/A'} MW",
        ]
        if not gaps_result.success:
            lines.append("\nDataroom status is unavailable right now.")
        elif gaps:
            lines.append(f"\n⚠️ {len(gaps)} document gaps in dataroom")
        else:
            lines.append("\n✅ Dataroom complete")
        return responses.reply("\n".join(lines), data={"project": data, "gaps": gaps})

    async def _search_docs(
        self, context: ConversationContext, turn: TurnState, intent: SearchDocsIntent
    ) -> AgentResponse:
        if not intent.search_query:
            return responses.failure("What document are you looking for?")

        project, failed = await self._resolver.resolve_hint(context, turn, intent.project_id, "last_project_id")
        if failed is not None:
            return _failed(failed)

        result = await self._read(
            context,
            OperationId.DOCUMENTS_SEARCH,
            {"query": intent.search_query, "project_id": project[0] if project else None, "limit": 10},
        )
        if not result.success:
            return _failed(result)

        documents = _items(result.data, "documents", "results")
        if not documents:
            return responses.failure(f'No documents found matching "{intent.search_query}".')

        first_id = documents[0].get("id")
        if first_id is not None:
            turn.set_pointer("last_document_id", str(first_id))

        listing = "\n".join(
            f"{index}. {doc.get('name', 'Untitled')} ({doc.get('status') or 'pending'})"
            for index, doc in enumerate(documents[:5], start=1)
        )
        return responses.reply(
            f"Found {len(documents)} document(s):\n{listing}",
            data={"documents": documents[:10]},
        )

    async def _summarize(
        self, context: ConversationContext, turn: TurnState, intent: SummarizeIntent
    ) -> AgentResponse:
        project, failed = await self._resolver.resolve_hint(context, turn, intent.project_id, "last_project_id")
        if failed is not None:
            return _failed(failed)

        result = await self._read(
            context,
            OperationId.ACTIVITY_SUMMARY,
            {"project_id": project[0] if project else None, "limit": 5},
        )
        if not result.success:
            return _failed(result)

        documents = _items(result.data, "documents")
        requests = _items(result.data, "requests", "rfis")
        if not documents and not requests:
            return responses.reply("No recent activity to report.", data={"documents": [], "requests": []})

        parts = ["**Recent Activity:**\n"]
        if documents:
            parts.append("📄 **Documents:**")
            parts.extend(f"• {doc.get('name', 'Untitled')} - {doc.get('status') or 'uploaded'}" for doc in documents)
            parts.append("")
        if requests:
            parts.append("❓ **Requests:**")
            parts.extend(
                f"• {(item.get('title') or str(item.get('description') or '')[:50])} - {item.get('status', 'open')}"
                for item in requests
            )
        return responses.reply("\n".join(parts).rstrip(), data={"documents": documents, "requests": requests})

    async def _create_work_order(
        self,
        context: ConversationContext,
        turn: TurnState,
        intent: CreateWorkOrderIntent,
        message: InboundMessage,
    ) -> AgentResponse:
        project, failed = await self._resolver.resolve_hint(context, turn, intent.project_id, "last_project_id")
        if failed is not None:
            return _failed(failed)
        site, failed = await self._resolver.resolve_hint(context, turn, intent.site_id, "last_site_id")
        if failed is not None:
            return _failed(failed)
        asset, failed = await self._resolver.resolve_hint(context, turn, intent.asset_id, "last_asset_id")
        if failed is not None:
            return _failed(failed)

        description = (intent.description or message.text).strip()
        if not description:
            return responses.failure("What should the work order be for?")

        payload = CreateWorkOrderPayload(
            description=description,
            project_id=project[0] if project else None,
            site_id=site[0] if site else None,
            asset_id=asset[0] if asset else None,
        )
        prompt = f'Create a work order with description:\n"{description}"'
        if site:
            prompt += f'\nSite: {entity_name(site[1], "selected site")}'
        if asset:
            prompt += f'\nAsset: {entity_name(asset[1], "selected asset")}'
        return await self._gate.request(
            context,
            payload,
            prompt,
            message="Please confirm to create this work order.",
        )

    async def _generate_dataroom(
        self, context: ConversationContext, turn: TurnState, intent: GenerateDataroomIntent
    ) -> AgentResponse:
        project, failed = await self._resolver.resolve_hint(context, turn, intent.project_id, "last_project_id")
        if failed is not None:
            return _failed(failed)
        if project is None:
            return responses.failure("Which project should I create a dataroom for?")

        project_id, data = project
        name = entity_name(data, "this project")
        return await self._gate.request(
            context,
            GenerateDataroomPayload(project_id=project_id, project_name=name),
            f'Generate a dataroom for "{name}"?',
            message="Please confirm to generate this dataroom.",
        )

    async def _link_doc(
        self, context: ConversationContext, turn: TurnState, intent: LinkDocIntent
    ) -> AgentResponse:
        attachment_id = turn.pointer(context, "last_attachment_id")
        if not attachment_id:
            return responses.failure("Send the file first, then tell me which project to link it to.")

        project, failed = await self._resolver.resolve_hint(context, turn, intent.project_id, "last_project_id")
        if failed is not None:
            return _failed(failed)
        if project is None:
            return responses.failure("Which project should I link the attachment to?")

        project_id, data = project
        # A project the user named outright is as certain as a suggestion gets.
        confidence = 1.0 if intent.project_id else intent.confidence
        return await self._attachments.request_link(
            context,
            attachment_id,
            project_id,
            entity_name(data, "the project"),
            confidence,
        )

    async def _list_requests(self, context: ConversationContext, intent: ListRequestsIntent) -> AgentResponse:
        result = await self._read(context, OperationId.REQUESTS_LIST_INCOMING, {"status": intent.status or "active"})
        if not result.success:
            return _failed(result)

        requests = _items(result.data, "requests")
        if not requests:
            return responses.reply(
                "You have no pending requests at this time.",
                suggested_actions=["Create a request", "Check project status"],
            )

        listing = "\n".join(
            f"{index}. {item.get('title', 'Untitled')} (from {item.get('issuer_org_name') or 'Unknown'})"
            f" - Due: {item.get('deadline_at') or 'No deadline'}"
            for index, item in enumerate(requests[:5], start=1)
        )
        return responses.reply(
            f"📋 Your pending requests:\n\n{listing}\n\n"
            'Reply "view [title]" for details, or "respond to [title]" to start responding.',
            data={"requests": requests[:5]},
            suggested_actions=[f"View {item.get('title', 'request')}" for item in requests[:3]],
        )

    async def _view_request(self, context: ConversationContext, intent: ViewRequestIntent) -> AgentResponse:
        if not intent.request_id:
            return responses.failure(
                "Which request would you like to view? Please specify the request name.",
                suggested_actions=["List requests"],
            )

        result = await self._read(context, OperationId.REQUESTS_GET, {"request_id": intent.request_id})
        if not result.success:
            return _failed(result)

        request = result.data if isinstance(result.data, dict) else {}
        requirements = request.get("requirements") or []
        message = (
            f"📄 **{request.get('title', 'Request')}**\n\n"
            f"From: {request.get('issuer_org_name') or 'Unknown'}\n"
            f"Status: {request.get('status', 'open')}\n"
            f"Deadline: {request.get('deadline_at') or 'No deadline'}\n"
            f"Requirements: {len(requirements)} items\n\n"
            f"{request.get('instructions') or 'No additional instructions.'}\n\n"
            'Reply "respond" to start your response.'
        )
        return responses.reply(
            message,
            data={"request": request},
            suggested_actions=["Respond to this request", "Back to requests"],
        )

    async def _respond_to_request(
        self, context: ConversationContext, intent: RespondToRequestIntent
    ) -> AgentResponse:
        if not intent.request_id:
            return responses.failure(
                "Which request would you like to respond to? Please specify the request name.",
                suggested_actions=["List requests"],
            )

        result = await self._read(context, OperationId.REQUESTS_GET, {"request_id": intent.request_id})
        if not result.success:
            return _failed(result)

        title = entity_name(result.data, "this request")
        return await self._gate.request(
            context,
            RespondToRequestPayload(request_id=intent.request_id, request_title=title),
            f'Start a response workspace for "{title}"?',
            message="Please confirm to start responding to this request.",
        )
