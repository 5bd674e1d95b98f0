"""
Tenancy Database Models

Users, organizations and memberships are owned by the primary application.
The agent only reads them: the workspace binder to resolve a tenant and the
RBAC bridge to reload the caller on every operation.
"""

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint

from channel_agent.db.models.channels import Base


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)  # active | suspended
    created_at = Column(DateTime(timezone=True), nullable=False)


class User(Base):
    __tablename__ = "users"

    id = Column(String(100), primary_key=True)
    email = Column(String(320), unique=True, nullable=True)
    name = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active | disabled
    created_at = Column(DateTime(timezone=True), nullable=False)


class OrganizationMembership(Base):
    """Org-scoped role for a user (owner, admin, editor, reviewer, viewer)."""

    __tablename__ = "organization_memberships"

    id = Column(String(100), primary_key=True)
    organization_id = Column(String(100), ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(String(100), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="uq_membership_org_user"),
    )
