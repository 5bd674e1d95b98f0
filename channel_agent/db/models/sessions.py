"""
Conversation Session Database Model

One row per (user, channel, thread). The row is the serialization point for a
conversation: context pointers and the single pending action live here, so a
restarted process picks the conversation up exactly where it was.
"""

from sqlalchemy import JSON, Column, DateTime, String, Text, UniqueConstraint

from channel_agent.db.models.channels import Base


class ConversationSession(Base):
    __tablename__ = "conversation_sessions"

    id = Column(String(100), primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    organization_id = Column(String(100), nullable=False, index=True)
    channel = Column(String(20), nullable=False)
    channel_identifier = Column(String(320), nullable=False)
    thread_id = Column(String(512), nullable=False)

    # Context pointers: ids only, re-validated on every read.
    last_project_id = Column(String(100), nullable=True)
    last_site_id = Column(String(100), nullable=True)
    last_asset_id = Column(String(100), nullable=True)
    last_document_id = Column(String(100), nullable=True)
    active_dataroom_id = Column(String(100), nullable=True)
    active_view_scope_id = Column(String(100), nullable=True)
    last_attachment_id = Column(String(100), nullable=True)

    # Pending action: all columns null together.
    pending_action_id = Column(String(100), nullable=True)
    pending_action = Column(String(50), nullable=True)
    pending_action_payload = Column(JSON, nullable=True)
    pending_action_prompt = Column(Text, nullable=True)
    pending_action_organization_id = Column(String(100), nullable=True)
    pending_action_created_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    last_message_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "channel", "thread_id", name="uq_conversation_thread"),
    )
