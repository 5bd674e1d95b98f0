"""Production wiring for the conversational agent."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from channel_agent.agent.attachments import AttachmentIntakeHandler
from channel_agent.agent.confirmation import ConfirmationGate
from channel_agent.agent.context import ContextResolver
from channel_agent.agent.handler import ConversationalAgent
from channel_agent.agent.intents import IntentRouter
from channel_agent.audit.log import SqlAuditLog
from channel_agent.classifier.service import GuardedIntentClassifier, LLMIntentClassifier
from channel_agent.config import Settings, get_settings
from channel_agent.identity.directory import SqlIdentityDirectory
from channel_agent.identity.resolver import IdentityResolver
from channel_agent.operations.bridge import RBACExecutionBridge
from channel_agent.operations.registry import OperationRegistry
from channel_agent.operations.remote import RemoteOperationBackend
from channel_agent.operations.users import SqlUserDirectory
from channel_agent.sessions.store import SqlConversationSessionStore
from channel_agent.storage.attachments import SqlAttachmentStore
from channel_agent.storage.blob import build_blob_store
from channel_agent.storage.media import MediaFetcher
from channel_agent.workspace.binder import WorkspaceBinder
from channel_agent.workspace.directory import SqlWorkspaceDirectory

logger = structlog.get_logger()


@dataclass
class AgentRuntime:
    agent: ConversationalAgent
    backend: RemoteOperationBackend
    fetcher: MediaFetcher

    async def aclose(self) -> None:
        await self.backend.aclose()
        await self.fetcher.aclose()


def build_agent_runtime(settings: Settings | None = None) -> AgentRuntime:
    settings = settings or get_settings()

    registry = OperationRegistry()
    backend = RemoteOperationBackend()
    backend.register_all(registry)
    registry.validate()

    sessions = SqlConversationSessionStore()
    bridge = RBACExecutionBridge(registry, SqlUserDirectory())
    resolver = ContextResolver(bridge)
    attachments = SqlAttachmentStore()
    gate = ConfirmationGate(
        sessions,
        bridge,
        attachments,
        SqlAuditLog(),
        product_name=settings.product_name,
    )
    fetcher = MediaFetcher()
    intake = AttachmentIntakeHandler(
        fetcher,
        build_blob_store(settings),
        attachments,
        resolver,
        gate,
        preselect_threshold=settings.attachment_preselect_threshold,
    )

    agent = ConversationalAgent(
        identities=IdentityResolver(SqlIdentityDirectory(), product_name=settings.product_name),
        workspaces=WorkspaceBinder(
            SqlWorkspaceDirectory(),
            sessions,
            attachments,
            product_name=settings.product_name,
        ),
        sessions=sessions,
        classifier=GuardedIntentClassifier(LLMIntentClassifier(product_name=settings.product_name)),
        resolver=resolver,
        gate=gate,
        attachments=intake,
        router=IntentRouter(bridge, resolver, gate, intake, product_name=settings.product_name),
    )
    logger.info("Conversational agent ready", blob_backend=settings.blob_storage_backend)
    return AgentRuntime(agent=agent, backend=backend, fetcher=fetcher)
