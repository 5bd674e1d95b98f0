"""
Channel Identity Database Models

SQLAlchemy models for channel senders:
- ChannelIdentity: exact (type, identifier) -> user mapping, admin-verified
- QuarantinedInbound: audit-only record of messages from unknown senders
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.ext.declarative import declarative_base

Base = declarative_base()


class ChannelIdentity(Base):
    """
    Maps a channel contact string to a user account.

    Matching is exact on (identity_type, identifier). Rows start as
    `unverified` and are promoted to `verified` only through the admin API.

    Attributes:
        identity_type: whatsapp_phone | email | phone
        identifier: Raw sender string as delivered by the channel provider
        organization_id: Optional org the identifier is scoped to
        status: unverified | verified | revoked
    """

    __tablename__ = "channel_identities"

    id = Column(String(100), primary_key=True)
    identity_type = Column(String(30), nullable=False)
    identifier = Column(String(320), nullable=False)
    user_id = Column(String(100), nullable=True, index=True)
    organization_id = Column(String(100), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="unverified", index=True)

    verified_by = Column(String(100), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("identity_type", "identifier", name="uq_channel_identity_exact"),
    )

    def __repr__(self) -> str:
        return f"<ChannelIdentity {self.identity_type}:{self.id} ({self.status})>"


class QuarantinedInbound(Base):
    """
    Message received from a sender with no matching identity.

    Append-only. Never fed back into message processing; admins triage
    the queue to decide whether to register the identifier.
    """

    __tablename__ = "quarantined_inbound"

    id = Column(String(100), primary_key=True)
    channel = Column(String(20), nullable=False, index=True)
    sender_identifier = Column(String(320), nullable=False, index=True)
    sender_display_name = Column(String(255), nullable=True)
    message_type = Column(String(20), nullable=False)
    text_content = Column(Text, nullable=True)
    raw_payload = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="pending", index=True)  # pending | dismissed
    received_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
