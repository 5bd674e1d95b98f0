"""
Ingested Attachment Database Model

Inbound binaries are stored before any linking decision. `link_state` moves
unlinked -> link_pending -> linked; `linked` is only ever written for a row
that is currently `link_pending`.
"""

from sqlalchemy import Column, DateTime, Float, Integer, String

from channel_agent.db.models.channels import Base


class IngestedAttachment(Base):
    __tablename__ = "ingested_attachments"

    id = Column(String(100), primary_key=True)
    organization_id = Column(String(100), nullable=False, index=True)
    ingested_by_user_id = Column(String(100), nullable=False)
    source_channel = Column(String(20), nullable=False)

    storage_key = Column(String(512), nullable=False)
    mime_type = Column(String(255), nullable=False)
    filename = Column(String(512), nullable=False)
    byte_size = Column(Integer, nullable=False, default=0)
    sha256 = Column(String(64), nullable=True)

    link_state = Column(String(20), nullable=False, default="unlinked", index=True)
    linked_entity_type = Column(String(30), nullable=True)
    linked_entity_id = Column(String(100), nullable=True)
    link_confidence = Column(Float, nullable=True)
    linked_by_user_id = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    linked_at = Column(DateTime(timezone=True), nullable=True)
