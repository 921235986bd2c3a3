"""Hash-chained audit trail for toolwarden sessions."""

from toolwarden.audit.trace_logger import AuditLog, HashedEvent

__all__ = ["AuditLog", "HashedEvent"]
