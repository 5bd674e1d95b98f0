"""
Attachment Intake Handler

Inbound files are stored and recorded as `unlinked` before anything else
happens. Linking is only ever proposed: a suggested project moves the
attachment to `link_pending` and parks a `link_attachment` pending action
behind the confirmation gate.
"""

from __future__ import annotations

from typing import Any

import structlog

from channel_agent.agent import responses
from channel_agent.agent.actions import LinkAttachmentPayload
from channel_agent.agent.confirmation import ConfirmationGate
from channel_agent.agent.context import ContextResolver, ConversationContext, TurnState, entity_name
from channel_agent.channels.models import AgentResponse, InboundMessage
from channel_agent.config import get_settings
from channel_agent.kernel.errors import ChannelAgentError
from channel_agent.kernel.ids import new_prefixed_id
from channel_agent.storage.attachments import AttachmentRecord, AttachmentStore
from channel_agent.storage.blob import BlobStore, extension_for
from channel_agent.storage.media import MediaFetcher

logger = structlog.get_logger()

# Confidence attached to a suggestion taken from the conversation's last project.
CONTEXT_POINTER_CONFIDENCE = 0.7

FETCH_FAILED = "I couldn't download that file. Please try sending it again."
NO_SUGGESTION = (
    "📎 Attachment received and stored.\n\n"
    'Reply "link to [project name]" to link it to a project.'
)
ALREADY_LINKED = "That attachment is already linked."


class AttachmentIntakeHandler:
    def __init__(
        self,
        fetcher: MediaFetcher,
        blobs: BlobStore,
        attachments: AttachmentStore,
        resolver: ContextResolver,
        gate: ConfirmationGate,
        *,
        preselect_threshold: float | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._blobs = blobs
        self._attachments = attachments
        self._resolver = resolver
        self._gate = gate
        self._threshold = (
            preselect_threshold
            if preselect_threshold is not None
            else get_settings().attachment_preselect_threshold
        )

    async def handle(self, context: ConversationContext, turn: TurnState, message: InboundMessage) -> AgentResponse:
        media = message.media
        if media is None:
            return responses.failure(responses.SEND_FILE_PROMPT)

        try:
            fetched = await self._fetcher.fetch(media)
        except ChannelAgentError as exc:
            logger.warning("Attachment fetch failed", code=exc.code, channel=message.channel.value)
            return responses.failure(FETCH_FAILED)

        stored = await self._blobs.put(
            context.organization_id,
            fetched.data,
            extension_for(fetched.content_type, media.filename),
        )
        record = AttachmentRecord(
            id=new_prefixed_id("att"),
            organization_id=context.organization_id,
            ingested_by_user_id=context.user_id,
            source_channel=message.channel,
            storage_key=stored.storage_key,
            mime_type=fetched.content_type,
            filename=media.filename or "attachment",
            byte_size=stored.byte_size,
            sha256=stored.sha256,
        )
        await self._attachments.create(record)
        turn.set_pointer("last_attachment_id", record.id)
        logger.info(
            "Attachment ingested",
            attachment_id=record.id,
            mime_type=record.mime_type,
            byte_size=record.byte_size,
        )

        suggestion = await self._resolver.validated_pointer(context, turn, "last_project_id")
        if suggestion is None:
            return responses.reply(NO_SUGGESTION, data={"attachment_id": record.id, "unlinked": True})

        project_id, project = suggestion
        return await self.request_link(
            context,
            record.id,
            project_id,
            entity_name(project, "the project"),
            CONTEXT_POINTER_CONFIDENCE,
            received=True,
        )

    async def request_link(
        self,
        context: ConversationContext,
        attachment_id: str,
        project_id: str,
        project_name: str,
        confidence: float,
        *,
        received: bool = False,
    ) -> AgentResponse:
        """Propose linking an attachment to a project; the gate decides."""
        if not await self._attachments.mark_link_pending(attachment_id, "project", project_id, confidence):
            return responses.failure(ALREADY_LINKED)

        header = "📎 Attachment received!\n\n" if received else ""
        if confidence >= self._threshold:
            prompt = f'{header}I\'ll link it to "{project_name}".'
        else:
            prompt = f'{header}Should I link it to "{project_name}"? I\'m not certain this is the right project.'

        data: dict[str, Any] = {
            "attachment_id": attachment_id,
            "suggested_project_id": project_id,
            "confidence": confidence,
            "unlinked": True,
        }
        payload = LinkAttachmentPayload(
            attachment_id=attachment_id,
            project_id=project_id,
            project_name=project_name,
            confidence=confidence,
        )
        try:
            return await self._gate.request(
                context,
                payload,
                prompt,
                message="Please confirm the attachment link.",
                data=data,
            )
        except Exception:
            await self._attachments.revert_to_unlinked(attachment_id)
            raise
