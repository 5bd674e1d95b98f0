"""
Workspace Binding Database Models

- WorkspaceBindingCode: single-use code generated in the web app and typed
  into a chat to bind that channel to one organization
- WorkspacePreference: per-channel default organization for a user
- WorkspaceSwitchLog: append-only record of binds
"""

from sqlalchemy import Column, DateTime, String

from channel_agent.db.models.channels import Base


class WorkspaceBindingCode(Base):
    __tablename__ = "workspace_binding_codes"

    code = Column(String(6), primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    organization_id = Column(String(100), nullable=False)
    channel = Column(String(20), nullable=True)  # NULL means any channel

    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    used_channel = Column(String(20), nullable=True)
    used_identifier = Column(String(320), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class WorkspacePreference(Base):
    __tablename__ = "workspace_preferences"

    user_id = Column(String(100), primary_key=True)
    channel = Column(String(20), primary_key=True)
    default_organization_id = Column(String(100), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class WorkspaceSwitchLog(Base):
    __tablename__ = "workspace_switch_log"

    id = Column(String(100), primary_key=True)
    user_id = Column(String(100), nullable=False, index=True)
    from_organization_id = Column(String(100), nullable=True)
    to_organization_id = Column(String(100), nullable=False)
    channel = Column(String(20), nullable=False)
    switch_method = Column(String(30), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
