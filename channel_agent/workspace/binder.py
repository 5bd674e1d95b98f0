"""
Workspace Binder

Decides which organization a turn runs in, and answers the chat-level
workspace commands. Replies never name an organization or say how many a
user belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

import structlog

from channel_agent.channels.models import InboundMessage
from channel_agent.config import get_settings
from channel_agent.db.rls import rls_context
from channel_agent.identity.types import ChannelIdentity
from channel_agent.kernel.errors import AmbiguousWorkspaceError, NoWorkspaceError
from channel_agent.kernel.time import coerce_utc, utc_now
from channel_agent.sessions.models import POINTER_FIELDS, ConversationSessionState
from channel_agent.sessions.store import ConversationSessionStore
from channel_agent.storage.attachments import AttachmentStore
from channel_agent.workspace.commands import WorkspaceCommandType, parse_workspace_command
from channel_agent.workspace.directory import WorkspaceDirectory

logger = structlog.get_logger()


class ResolutionMethod(str, Enum):
    IDENTIFIER_SCOPED = "identifier_scoped"
    CHANNEL_DEFAULT = "channel_default"
    THREAD_BINDING = "thread_binding"
    SINGLE_MEMBERSHIP = "single_membership"
    BINDING_CODE = "binding_code"


@dataclass(frozen=True)
class WorkspaceResolution:
    organization_id: str
    role: str
    method: ResolutionMethod


class WorkspaceResponses:
    def __init__(self, product_name: str) -> None:
        self.ambiguous = (
            "You have access to multiple workspaces. To continue, please:\n\n"
            f"1. Go to your {product_name} web dashboard\n"
            "2. Select the workspace you want to use\n"
            '3. Click "Generate Binding Code"\n'
            "4. Reply here with: bind code XXXXXX\n\n"
            "This ensures your messages go to the correct workspace."
        )
        self.no_workspace = (
            f"This identifier is not linked to an {product_name} workspace. "
            "Please contact your administrator to get access."
        )
        self.binding_failed = (
            "Invalid or expired binding code. Please generate a new code from your web dashboard."
        )
        self.not_bound = (
            "No workspace is currently bound to this chat. Please bind a workspace first "
            "using a binding code from your web dashboard."
        )

    @staticmethod
    def binding_success(method: str) -> str:
        return (
            f"Workspace bound successfully via {method}. You can now send messages "
            "and they will be processed in this workspace."
        )

    @staticmethod
    def bound(role: str) -> str:
        return (
            f"You are currently working in a workspace as {role}. To switch workspaces, "
            "generate a new binding code from your web dashboard."
        )


class WorkspaceBinder:
    def __init__(
        self,
        directory: WorkspaceDirectory,
        sessions: ConversationSessionStore,
        attachments: AttachmentStore,
        *,
        product_name: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._directory = directory
        self._sessions = sessions
        self._attachments = attachments
        self._clock = clock
        self.responses = WorkspaceResponses(product_name or get_settings().product_name)

    async def handle_command(self, identity: ChannelIdentity, message: InboundMessage) -> str | None:
        """Answer a workspace command, or return None when the text is not one."""
        command = parse_workspace_command(message.text)
        if command is None:
            return None

        if command.type == WorkspaceCommandType.BIND_CODE:
            bound = await self._bind_with_code(identity, message, command.code or "")
            if not bound:
                return self.responses.binding_failed
            return self.responses.binding_success("binding code")

        if command.type == WorkspaceCommandType.WORKSPACE_STATUS:
            try:
                resolution = await self.resolve(identity, message)
            except (AmbiguousWorkspaceError, NoWorkspaceError):
                return self.responses.not_bound
            return self.responses.bound(resolution.role)

        # Switching always goes through a fresh binding code.
        return self.responses.ambiguous

    async def enter_session(self, user_id: str, organization_id: str, message: InboundMessage) -> str:
        """Open (or reuse) the thread's session in `organization_id`.

        Moving a thread to another organization drops its pointers and pending
        action; an attachment waiting on that action goes back to unlinked.
        """
        previous = await self._sessions.get_session_by_thread(user_id, message.channel, message.thread_key)
        session_id = await self._sessions.ensure_session(
            user_id,
            organization_id,
            message.channel,
            message.sender_identifier,
            message.thread_key,
        )
        if previous is not None and previous.organization_id != organization_id:
            await self._release_pending_link(previous)
        return session_id

    async def resolve(self, identity: ChannelIdentity, message: InboundMessage) -> WorkspaceResolution:
        user_id = identity.user_id or ""

        if identity.organization_id:
            resolution = await self._try(user_id, identity.organization_id, ResolutionMethod.IDENTIFIER_SCOPED)
            if resolution:
                return resolution

        default_org = await self._directory.get_channel_default(user_id, message.channel)
        if default_org:
            resolution = await self._try(user_id, default_org, ResolutionMethod.CHANNEL_DEFAULT)
            if resolution:
                return resolution

        session = await self._sessions.get_session_by_thread(user_id, message.channel, message.thread_key)
        if session and session.organization_id:
            resolution = await self._try(user_id, session.organization_id, ResolutionMethod.THREAD_BINDING)
            if resolution:
                return resolution

        memberships = await self._directory.list_active_memberships(user_id)
        if len(memberships) == 1:
            only = memberships[0]
            return WorkspaceResolution(only.organization_id, only.role, ResolutionMethod.SINGLE_MEMBERSHIP)
        if not memberships:
            raise NoWorkspaceError(message=self.responses.no_workspace)
        raise AmbiguousWorkspaceError(message=self.responses.ambiguous)

    async def _release_pending_link(self, previous: ConversationSessionState) -> None:
        pending = previous.pending_action
        attachment_id = pending.payload.get("attachment_id") if pending else None
        if not attachment_id:
            return
        with rls_context(pending.organization_id):
            reverted = await self._attachments.revert_to_unlinked(str(attachment_id))
        logger.info(
            "Pending attachment link dropped on rebind",
            session_id=previous.id,
            attachment_id=attachment_id,
            reverted=reverted,
        )

    async def _try(self, user_id: str, organization_id: str, method: ResolutionMethod) -> WorkspaceResolution | None:
        role = await self._directory.get_active_role(user_id, organization_id)
        if not role:
            return None
        return WorkspaceResolution(organization_id, role, method)

    async def _bind_with_code(self, identity: ChannelIdentity, message: InboundMessage, code: str) -> bool:
        user_id = identity.user_id or ""
        binding = await self._directory.get_binding_code(code)

        if (
            binding is None
            or binding.used_at is not None
            or coerce_utc(binding.expires_at) <= self._clock()
            or binding.user_id != user_id
            or (binding.channel is not None and binding.channel != message.channel)
        ):
            logger.info("Workspace binding code rejected", user_id=user_id, channel=message.channel.value)
            return False

        role = await self._directory.get_active_role(user_id, binding.organization_id)
        if not role:
            logger.info("Workspace binding code rejected: no role in target", user_id=user_id)
            return False

        if not await self._directory.mark_binding_code_used(code, message.channel, message.sender_identifier):
            return False

        thread_id = message.thread_key
        previous = await self._sessions.get_session_by_thread(user_id, message.channel, thread_id)
        session_id = await self._sessions.ensure_session(
            user_id,
            binding.organization_id,
            message.channel,
            message.sender_identifier,
            thread_id,
        )
        if previous is not None:
            # A rebind always starts the thread from a clean slate.
            await self._sessions.update_context(session_id, {field: None for field in POINTER_FIELDS})
            await self._sessions.clear_pending_action(session_id)
            await self._release_pending_link(previous)

        await self._directory.log_switch(
            user_id,
            previous.organization_id if previous else None,
            binding.organization_id,
            message.channel,
            ResolutionMethod.BINDING_CODE.value,
        )
        logger.info("Workspace bound via binding code", user_id=user_id, session_id=session_id)
        return True
