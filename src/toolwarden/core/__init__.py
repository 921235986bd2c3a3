"""Core enums and audit models shared by every toolwarden component."""

from toolwarden.core.models import (
    AuditEvent,
    ConfirmationOutcome,
    FailureKind,
    GateDecision,
    LoopState,
    MessageRole,
    PolicyLevel,
    RiskClass,
    SessionFailureKind,
    SessionStatus,
)

__all__ = [
    "AuditEvent",
    "ConfirmationOutcome",
    "FailureKind",
    "GateDecision",
    "LoopState",
    "MessageRole",
    "PolicyLevel",
    "RiskClass",
    "SessionFailureKind",
    "SessionStatus",
]
