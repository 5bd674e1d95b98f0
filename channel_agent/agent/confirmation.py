"""
Confirmation Gate

Every mutating operation is parked as a pending action on the session and
only runs after an explicit affirmative reply on the same thread.

    NONE -> PENDING -> EXECUTED | CANCELLED -> NONE

The pending action is cleared with a compare-and-clear *before* the
operation is dispatched, so two racing "yes" replies cannot both execute
it. Cancellation, expiry and execution are written to the audit ledger.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

import pydantic
import structlog

from channel_agent.agent import responses
from channel_agent.agent.actions import (
    ACTION_OPERATIONS,
    CreateWorkOrderPayload,
    GenerateDataroomPayload,
    LinkAttachmentPayload,
    PendingAction,
    PendingActionPayload,
    RespondToRequestPayload,
)
from channel_agent.agent.context import ConversationContext, TurnState
from channel_agent.agent.replies import ReplyKind, classify_reply
from channel_agent.audit.log import AuditLog, emit_audit_event
from channel_agent.channels.models import AgentResponse
from channel_agent.config import get_settings
from channel_agent.kernel.time import coerce_utc, utc_now
from channel_agent.monitoring import get_metrics
from channel_agent.operations.bridge import SAFE_MESSAGES, RBACExecutionBridge
from channel_agent.operations.models import ErrorKind, OperationId, OperationResult
from channel_agent.sessions.models import StoredPendingAction
from channel_agent.sessions.store import ConversationSessionStore
from channel_agent.storage.attachments import AttachmentStore, LinkState

logger = structlog.get_logger()


def _created_id(data: Any, *keys: str) -> str | None:
    if isinstance(data, dict):
        for key in (*keys, "id"):
            if data.get(key) is not None:
                return str(data[key])
    return None


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class ConfirmationGate:
    def __init__(
        self,
        sessions: ConversationSessionStore,
        bridge: RBACExecutionBridge,
        attachments: AttachmentStore,
        audit: AuditLog,
        *,
        max_age: timedelta | None = None,
        product_name: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        settings = get_settings()
        self._sessions = sessions
        self._bridge = bridge
        self._attachments = attachments
        self._audit = audit
        self._max_age = max_age or timedelta(minutes=settings.pending_action_max_age_minutes)
        self._product_name = product_name or settings.product_name
        self._clock = clock

    # -- PENDING ----------------------------------------------------------

    async def request(
        self,
        context: ConversationContext,
        payload: PendingActionPayload,
        prompt: str,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> AgentResponse:
        """Park `payload` as the session's pending action. Nothing executes."""
        full_prompt = f"{prompt}\n\n{responses.CONFIRM_INSTRUCTIONS}"
        action = PendingAction.new(payload, full_prompt, context.organization_id, self._clock())
        stored = action.to_stored()

        if context.pending_action is not None:
            logger.info(
                "Replacing unresolved pending action",
                session_id=context.session_id,
                previous_action=context.pending_action.name,
            )
            get_metrics().track_confirmation(context.pending_action.name, "superseded")
            previous_attachment = (context.pending_action.payload or {}).get("attachment_id")
            if previous_attachment and previous_attachment != getattr(payload, "attachment_id", None):
                await self._attachments.revert_to_unlinked(str(previous_attachment))

        await self._sessions.set_pending_action(context.session_id, stored)
        context.pending_action = stored
        get_metrics().track_confirmation(action.name.value, "requested")
        return responses.confirmation_request(message, full_prompt, data)

    def is_expired(self, pending: StoredPendingAction) -> bool:
        return self._clock() - coerce_utc(pending.created_at) > self._max_age

    async def expire(self, context: ConversationContext) -> bool:
        """Auto-cancel a stale pending action. Returns True if this call cleared it."""
        pending = context.pending_action
        if pending is None:
            return False
        cleared = await self._cancel(context, pending, "expired")
        context.pending_action = None
        return cleared

    # -- PENDING -> EXECUTED | CANCELLED ------------------------------------

    async def resolve(self, context: ConversationContext, turn: TurnState, text: str) -> AgentResponse:
        pending = context.pending_action
        if pending is None:
            return responses.reply(responses.NOTHING_PENDING)

        if pending.organization_id != context.organization_id:
            await self._cancel(context, pending, "workspace_changed")
            context.pending_action = None
            return responses.failure(responses.WRONG_WORKSPACE_CANCELLED)

        try:
            action = PendingAction.from_stored(pending)
        except pydantic.ValidationError:
            logger.error("Unreadable pending action payload", session_id=context.session_id, action=pending.name)
            await self._cancel(context, pending, "invalid_payload")
            context.pending_action = None
            return responses.failure(responses.GENERIC_FAILURE)

        kind = classify_reply(text)

        if kind == ReplyKind.UNCLEAR:
            get_metrics().track_confirmation(action.name.value, "reprompted")
            return responses.reprompt(pending.prompt)

        if kind == ReplyKind.NEGATIVE:
            cleared = await self._cancel(context, pending, "user_cancelled")
            context.pending_action = None
            if not cleared:
                return responses.reply(responses.ALREADY_HANDLED)
            return responses.reply(responses.ACTION_CANCELLED)

        # Affirmative: clear first, then dispatch.
        cleared = await self._sessions.clear_pending_action(context.session_id, expected_action_id=pending.id)
        context.pending_action = None
        if not cleared:
            get_metrics().track_confirmation(action.name.value, "race_lost")
            logger.info("Pending action already resolved elsewhere", session_id=context.session_id, action_id=pending.id)
            return responses.reply(responses.ALREADY_HANDLED)

        get_metrics().track_confirmation(action.name.value, "confirmed")
        response, result = await self._dispatch(context, turn, action)

        await emit_audit_event(
            self._audit,
            organization_id=context.organization_id,
            action="pending_action.executed" if result.success else "pending_action.failed",
            actor_id=context.user_id,
            resource_type="pending_action",
            resource_id=action.id,
            metadata=_drop_none(
                {
                    "action": action.name.value,
                    "operation": ACTION_OPERATIONS[action.name].value,
                    "channel": context.channel.value,
                    "session_id": context.session_id,
                    "error_kind": result.error_kind.value if result.error_kind else None,
                }
            ),
        )
        get_metrics().track_confirmation(action.name.value, "executed" if result.success else "failed")
        return response

    async def _cancel(self, context: ConversationContext, pending: StoredPendingAction, reason: str) -> bool:
        cleared = await self._sessions.clear_pending_action(context.session_id, expected_action_id=pending.id)
        if not cleared:
            return False

        attachment_id = pending.payload.get("attachment_id") if pending.payload else None
        if attachment_id:
            await self._attachments.revert_to_unlinked(str(attachment_id))

        get_metrics().track_confirmation(pending.name, "expired" if reason == "expired" else "cancelled")
        logger.info("Pending action cancelled", session_id=context.session_id, action=pending.name, reason=reason)
        await emit_audit_event(
            self._audit,
            organization_id=pending.organization_id,
            action="pending_action.expired" if reason == "expired" else "pending_action.cancelled",
            actor_id=None if reason == "expired" else context.user_id,
            resource_type="pending_action",
            resource_id=pending.id,
            metadata={
                "action": pending.name,
                "reason": reason,
                "channel": context.channel.value,
                "session_id": context.session_id,
            },
        )
        return True

    # -- EXECUTED ---------------------------------------------------------

    async def _dispatch(
        self,
        context: ConversationContext,
        turn: TurnState,
        action: PendingAction,
    ) -> tuple[AgentResponse, OperationResult]:
        payload = action.payload
        if isinstance(payload, CreateWorkOrderPayload):
            return await self._create_work_order(context, payload)
        if isinstance(payload, GenerateDataroomPayload):
            return await self._generate_dataroom(context, turn, payload)
        if isinstance(payload, LinkAttachmentPayload):
            return await self._link_attachment(context, turn, payload)
        return await self._respond_to_request(context, payload)

    async def _run(self, context: ConversationContext, operation: OperationId, input: dict[str, Any]) -> OperationResult:
        return await self._bridge.execute(context.user_id, context.organization_id, operation, _drop_none(input))

    async def _create_work_order(
        self, context: ConversationContext, payload: CreateWorkOrderPayload
    ) -> tuple[AgentResponse, OperationResult]:
        result = await self._run(
            context,
            OperationId.MAINTENANCE_CREATE_WORK_ORDER,
            {
                "title": payload.description[:100] or "Work Order",
                "description": payload.description,
                "project_id": payload.project_id,
                "site_id": payload.site_id,
                "asset_id": payload.asset_id,
                "source_type": "reactive",
                "work_type": "corrective",
                "priority": "medium",
            },
        )
        if not result.success:
            return responses.failure(result.error or responses.GENERIC_FAILURE), result

        work_order_id = _created_id(result.data, "work_order_id")
        suffix = f" (ID: {work_order_id})" if work_order_id else ""
        return responses.reply(f"✅ Work order created{suffix}", data={"work_order_id": work_order_id}), result

    async def _generate_dataroom(
        self, context: ConversationContext, turn: TurnState, payload: GenerateDataroomPayload
    ) -> tuple[AgentResponse, OperationResult]:
        result = await self._run(context, OperationId.DATAROOMS_GENERATE, {"project_id": payload.project_id})
        if not result.success:
            return responses.failure(result.error or responses.GENERIC_FAILURE), result

        dataroom_id = _created_id(result.data, "dataroom_id")
        if dataroom_id:
            turn.set_pointer("active_dataroom_id", dataroom_id)
        name = payload.project_name or "the project"
        suffix = f" (ID: {dataroom_id})" if dataroom_id else ""
        return responses.reply(f'✅ Dataroom created for "{name}"{suffix}', data={"dataroom_id": dataroom_id}), result

    async def _link_attachment(
        self, context: ConversationContext, turn: TurnState, payload: LinkAttachmentPayload
    ) -> tuple[AgentResponse, OperationResult]:
        record = await self._attachments.get(payload.attachment_id)
        if record is None or record.organization_id != context.organization_id:
            result = OperationResult.failed(ErrorKind.NOT_FOUND, SAFE_MESSAGES[ErrorKind.NOT_FOUND])
            return responses.failure(result.error or ""), result
        if record.link_state != LinkState.LINK_PENDING:
            logger.info("Attachment no longer pending a link", attachment_id=record.id, link_state=record.link_state.value)
            result = OperationResult.failed(ErrorKind.INVALID, responses.ATTACHMENT_NOT_PENDING)
            return responses.failure(responses.ATTACHMENT_NOT_PENDING), result

        result = await self._run(
            context,
            OperationId.DOCUMENTS_LINK_ATTACHMENT,
            {
                "attachment_id": record.id,
                "project_id": payload.project_id,
                "storage_key": record.storage_key,
                "filename": record.filename,
                "mime_type": record.mime_type,
                "byte_size": record.byte_size,
                "sha256": record.sha256,
                "confidence": payload.confidence,
                "linked_by": "user_confirmed",
            },
        )
        if not result.success:
            await self._attachments.revert_to_unlinked(record.id)
            return responses.failure(result.error or responses.GENERIC_FAILURE), result

        turn.set_pointer("last_project_id", payload.project_id)
        name = payload.project_name or "the project"
        message = f'✅ Attachment linked to "{name}".'
        if not await self._attachments.mark_linked(record.id, context.user_id):
            logger.warning("Attachment linked remotely but local state was not updated", attachment_id=record.id)
            message = f"{message}\n\n{responses.LINK_STATE_NOT_SAVED_NOTE}"
        return responses.reply(message, data={"attachment_id": record.id}), result

    async def _respond_to_request(
        self, context: ConversationContext, payload: RespondToRequestPayload
    ) -> tuple[AgentResponse, OperationResult]:
        result = await self._run(context, OperationId.REQUEST_WORKSPACES_CREATE, {"request_id": payload.request_id})
        if not result.success:
            return responses.failure(result.error or responses.GENERIC_FAILURE), result

        workspace_id = _created_id(result.data, "workspace_id")
        validation: Any = None
        if workspace_id:
            validation_result = await self._bridge.execute_read(
                context.user_id,
                context.organization_id,
                OperationId.REQUEST_WORKSPACES_VALIDATE,
                {"workspace_id": workspace_id},
            )
            validation = validation_result.data if validation_result.success else None

        missing = 0
        if isinstance(validation, dict):
            missing = len(validation.get("missing_fields") or []) + len(validation.get("missing_docs") or [])
        status_line = f"⚠️ {missing} items still needed." if missing else "✅ All requirements met!"
        message = (
            "📝 Response workspace ready!\n\n"
            f"{status_line}\n\n"
            "You can:\n"
            "• Send documents as attachments\n"
            "• Reply with answers to questions\n"
            '• Say "submit" when ready\n\n'
            f"For the full interface, visit the Requests page in {self._product_name}."
        )
        response = responses.reply(
            message,
            data={"workspace_id": workspace_id, "validation": validation},
            suggested_actions=["Upload document", "List missing items", "Submit response"],
        )
        return response, result
