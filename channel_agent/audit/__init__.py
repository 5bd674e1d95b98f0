"""Audit logging for confirmation-gate decisions."""

from channel_agent.audit.log import AuditLog, SqlAuditLog, emit_audit_event, record_audit_event

__all__ = ["AuditLog", "SqlAuditLog", "emit_audit_event", "record_audit_event"]
