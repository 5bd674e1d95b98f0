"""
Conversational Agent

One inbound message is one turn:

    identity -> workspace -> session (locked) -> pending gate | attachment | classifier -> reply

Every rejection on the way is turned into a safe reply at the turn boundary.
Pointer updates collected while handling the turn are written once at the
end, while the session lock is still held.
"""

from __future__ import annotations

import structlog

from channel_agent.agent import responses
from channel_agent.agent.attachments import AttachmentIntakeHandler
from channel_agent.agent.confirmation import ConfirmationGate
from channel_agent.agent.context import ContextResolver, ConversationContext, TurnState
from channel_agent.agent.intents import IntentRouter
from channel_agent.agent.replies import is_bare_reply
from channel_agent.channels.models import AgentResponse, InboundMessage
from channel_agent.classifier.service import IntentClassifier
from channel_agent.db.rls import rls_context
from channel_agent.identity.resolver import IdentityResolver
from channel_agent.kernel.errors import ChannelAgentError
from channel_agent.monitoring.metrics import get_metrics
from channel_agent.sessions.store import ConversationSessionStore
from channel_agent.workspace.binder import WorkspaceBinder, WorkspaceResolution

logger = structlog.get_logger()


class ConversationalAgent:
    def __init__(
        self,
        *,
        identities: IdentityResolver,
        workspaces: WorkspaceBinder,
        sessions: ConversationSessionStore,
        classifier: IntentClassifier,
        resolver: ContextResolver,
        gate: ConfirmationGate,
        attachments: AttachmentIntakeHandler,
        router: IntentRouter,
    ) -> None:
        self._identities = identities
        self._workspaces = workspaces
        self._sessions = sessions
        self._classifier = classifier
        self._resolver = resolver
        self._gate = gate
        self._attachments = attachments
        self._router = router

    async def process_inbound_message(self, message: InboundMessage) -> AgentResponse:
        """Process one inbound message and return the reply to deliver."""
        channel = message.channel.value
        metrics = get_metrics()

        with structlog.contextvars.bound_contextvars(channel=channel, thread_id=message.thread_key):
            with metrics.time_turn(channel):
                try:
                    response = await self._process(message)
                except ChannelAgentError as exc:
                    logger.info("Turn rejected", code=exc.code)
                    metrics.track_turn(channel, exc.code)
                    return responses.failure(exc.message)
                except Exception:
                    logger.exception("Turn failed")
                    metrics.track_turn(channel, "error")
                    return responses.failure(responses.GENERIC_FAILURE)

        metrics.track_turn(channel, "ok" if response.success else "declined")
        return response

    async def _process(self, message: InboundMessage) -> AgentResponse:
        identity = await self._identities.authenticate(message)
        user_id = identity.user_id or ""

        command_reply = await self._workspaces.handle_command(identity, message)
        if command_reply is not None:
            return responses.reply(command_reply)

        workspace = await self._workspaces.resolve(identity, message)
        session_id = await self._workspaces.enter_session(user_id, workspace.organization_id, message)

        with structlog.contextvars.bound_contextvars(
            session_id=session_id,
            user_id=user_id,
            organization_id=workspace.organization_id,
        ), rls_context(workspace.organization_id):
            async with self._sessions.lock(session_id):
                context = await self._load_context(session_id, workspace, message)
                turn = TurnState()
                response = await self._handle_turn(context, turn, message)
                if turn.pointer_updates:
                    await self._sessions.update_context(session_id, turn.pointer_updates)
                return responses.with_notes(response, turn.notes)

    async def _load_context(
        self,
        session_id: str,
        workspace: WorkspaceResolution,
        message: InboundMessage,
    ) -> ConversationContext:
        state = await self._sessions.get_session(session_id)
        if state is None:
            raise RuntimeError(f"Conversation session {session_id} missing after ensure")
        return ConversationContext(
            session_id=session_id,
            user_id=state.user_id,
            organization_id=state.organization_id,
            role=workspace.role,
            channel=message.channel,
            identifier=message.sender_identifier,
            thread_id=state.thread_id,
            pointers=state.pointers,
            pending_action=state.pending_action,
        )

    async def _handle_turn(
        self,
        context: ConversationContext,
        turn: TurnState,
        message: InboundMessage,
    ) -> AgentResponse:
        pending = context.pending_action
        if pending is not None and self._gate.is_expired(pending):
            await self._gate.expire(context)
            turn.notes.append(responses.PENDING_EXPIRED_NOTE)

        if context.pending_action is not None:
            return await self._gate.resolve(context, turn, message.text)

        if message.has_media:
            return await self._attachments.handle(context, turn, message)

        text = message.text
        if not text:
            return responses.unknown_intent()

        if is_bare_reply(text):
            return responses.reply(responses.NOTHING_PENDING)

        summary = await self._resolver.summary(context, turn)
        classification = await self._classifier.classify(text, summary)
        logger.info(
            "Intent classified",
            intent=classification.intent.value,
            confidence=classification.confidence,
        )
        return await self._router.handle(context, turn, classification, message)
