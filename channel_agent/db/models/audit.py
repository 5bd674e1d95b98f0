"""
Audit Ledger Database Models

Hash-chained, per-organization log of confirmation-gate decisions so every
executed mutation can be traced back to the reply that authorised it.
"""

from sqlalchemy import JSON, BigInteger, Column, DateTime, String

from channel_agent.db.models.channels import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(String(100), primary_key=True)
    organization_id = Column(String(100), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    actor_type = Column(String(30), nullable=False)
    actor_id = Column(String(100), nullable=True)
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(String(100), nullable=True)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    sequence = Column(BigInteger, nullable=False)
    prev_hash = Column(String(64), nullable=True)
    entry_hash = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class AuditLedgerHead(Base):
    __tablename__ = "audit_ledger_head"

    organization_id = Column(String(100), primary_key=True)
    last_sequence = Column(BigInteger, nullable=False, default=0)
    last_hash = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
