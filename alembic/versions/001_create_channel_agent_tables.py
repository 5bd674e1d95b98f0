"""Create channel agent tables.

Revision ID: 001_create_channel_agent_tables
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_create_channel_agent_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # Tenancy (mirrors the primary application's schema; read-only here)
    # ==========================================================================
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("organizations_status_idx", "organizations", ["status"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("email", sa.String(320), nullable=True, unique=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "organization_memberships",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("organization_id", sa.String(100), sa.ForeignKey("organizations.id"), nullable=False),
        sa.Column("user_id", sa.String(100), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_membership_org_user"),
    )
    op.create_index("organization_memberships_org_idx", "organization_memberships", ["organization_id"])
    op.create_index("organization_memberships_user_idx", "organization_memberships", ["user_id"])

    # ==========================================================================
    # Channel identities and quarantine
    # ==========================================================================
    op.create_table(
        "channel_identities",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("identity_type", sa.String(30), nullable=False),
        sa.Column("identifier", sa.String(320), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("organization_id", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="unverified"),
        sa.Column("verified_by", sa.String(100), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("identity_type", "identifier", name="uq_channel_identity_exact"),
    )
    op.create_index("channel_identities_user_idx", "channel_identities", ["user_id"])
    op.create_index("channel_identities_org_idx", "channel_identities", ["organization_id"])
    op.create_index("channel_identities_status_idx", "channel_identities", ["status"])

    op.create_table(
        "quarantined_inbound",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("sender_identifier", sa.String(320), nullable=False),
        sa.Column("sender_display_name", sa.String(255), nullable=True),
        sa.Column("message_type", sa.String(20), nullable=False),
        sa.Column("text_content", sa.Text, nullable=True),
        sa.Column("raw_payload", sa.JSON, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("quarantined_inbound_channel_idx", "quarantined_inbound", ["channel"])
    op.create_index("quarantined_inbound_sender_idx", "quarantined_inbound", ["sender_identifier"])
    op.create_index("quarantined_inbound_status_idx", "quarantined_inbound", ["status"])
    op.create_index("quarantined_inbound_expires_idx", "quarantined_inbound", ["expires_at"])

    # ==========================================================================
    # Workspace binding
    # ==========================================================================
    op.create_table(
        "workspace_binding_codes",
        sa.Column("code", sa.String(6), primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("organization_id", sa.String(100), nullable=False),
        sa.Column("channel", sa.String(20), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_channel", sa.String(20), nullable=True),
        sa.Column("used_identifier", sa.String(320), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("workspace_binding_codes_user_idx", "workspace_binding_codes", ["user_id"])

    op.create_table(
        "workspace_preferences",
        sa.Column("user_id", sa.String(100), primary_key=True),
        sa.Column("channel", sa.String(20), primary_key=True),
        sa.Column("default_organization_id", sa.String(100), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "workspace_switch_log",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("from_organization_id", sa.String(100), nullable=True),
        sa.Column("to_organization_id", sa.String(100), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("switch_method", sa.String(30), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("workspace_switch_log_user_idx", "workspace_switch_log", ["user_id"])

    # ==========================================================================
    # Conversation sessions
    # ==========================================================================
    op.create_table(
        "conversation_sessions",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("user_id", sa.String(100), nullable=False),
        sa.Column("organization_id", sa.String(100), nullable=False),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("channel_identifier", sa.String(320), nullable=False),
        sa.Column("thread_id", sa.String(512), nullable=False),
        # Context pointers
        sa.Column("last_project_id", sa.String(100), nullable=True),
        sa.Column("last_site_id", sa.String(100), nullable=True),
        sa.Column("last_asset_id", sa.String(100), nullable=True),
        sa.Column("last_document_id", sa.String(100), nullable=True),
        sa.Column("active_dataroom_id", sa.String(100), nullable=True),
        sa.Column("active_view_scope_id", sa.String(100), nullable=True),
        sa.Column("last_attachment_id", sa.String(100), nullable=True),
        # Pending action
        sa.Column("pending_action_id", sa.String(100), nullable=True),
        sa.Column("pending_action", sa.String(50), nullable=True),
        sa.Column("pending_action_payload", sa.JSON, nullable=True),
        sa.Column("pending_action_prompt", sa.Text, nullable=True),
        sa.Column("pending_action_organization_id", sa.String(100), nullable=True),
        sa.Column("pending_action_created_at", sa.DateTime(timezone=True), nullable=True),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "channel", "thread_id", name="uq_conversation_thread"),
    )
    op.create_index("conversation_sessions_user_idx", "conversation_sessions", ["user_id"])
    op.create_index("conversation_sessions_org_idx", "conversation_sessions", ["organization_id"])

    # ==========================================================================
    # Ingested attachments
    # ==========================================================================
    op.create_table(
        "ingested_attachments",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("organization_id", sa.String(100), nullable=False),
        sa.Column("ingested_by_user_id", sa.String(100), nullable=False),
        sa.Column("source_channel", sa.String(20), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("mime_type", sa.String(255), nullable=False),
        sa.Column("filename", sa.String(512), nullable=False),
        sa.Column("byte_size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sha256", sa.String(64), nullable=True),
        sa.Column("link_state", sa.String(20), nullable=False, server_default="unlinked"),
        sa.Column("linked_entity_type", sa.String(30), nullable=True),
        sa.Column("linked_entity_id", sa.String(100), nullable=True),
        sa.Column("link_confidence", sa.Float, nullable=True),
        sa.Column("linked_by_user_id", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("linked_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "link_state IN ('unlinked', 'link_pending', 'linked')",
            name="ck_ingested_attachments_link_state",
        ),
    )
    op.create_index("ingested_attachments_org_idx", "ingested_attachments", ["organization_id"])
    op.create_index("ingested_attachments_link_state_idx", "ingested_attachments", ["link_state"])

    # ==========================================================================
    # Audit ledger
    # ==========================================================================
    op.create_table(
        "audit_log",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("organization_id", sa.String(100), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor_type", sa.String(30), nullable=False),
        sa.Column("actor_id", sa.String(100), nullable=True),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(100), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        sa.Column("sequence", sa.BigInteger, nullable=False),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.Column("entry_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("organization_id", "sequence", name="uq_audit_log_org_sequence"),
    )
    op.create_index("audit_log_org_idx", "audit_log", ["organization_id"])

    op.create_table(
        "audit_ledger_head",
        sa.Column("organization_id", sa.String(100), primary_key=True),
        sa.Column("last_sequence", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("last_hash", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("audit_ledger_head")
    op.drop_table("audit_log")
    op.drop_table("ingested_attachments")
    op.drop_table("conversation_sessions")
    op.drop_table("workspace_switch_log")
    op.drop_table("workspace_preferences")
    op.drop_table("workspace_binding_codes")
    op.drop_table("quarantined_inbound")
    op.drop_table("channel_identities")
    op.drop_table("organization_memberships")
    op.drop_table("users")
    op.drop_table("organizations")
