"""
Toolwarden Core Data Models

Shared enums and the audit event type used across the package. This module
is the foundation every other component imports from; it must have zero
internal dependencies beyond pydantic.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ─── Enums ───────────────────────────────────────────────────

class RiskClass(str, Enum):
    """Inherent potential for harmful effect of a tool."""
    READ_ONLY = "READ_ONLY"
    MUTATES_WORKSPACE = "MUTATES_WORKSPACE"
    RUNS_ARBITRARY_CODE = "RUNS_ARBITRARY_CODE"


class PolicyLevel(str, Enum):
    """Security policy level, fixed for the lifetime of one session.

    - READ_ONLY: no mutating tool may run
    - CONFIRM_WRITES: mutating and code-running tools need operator approval
    - CONFIRM_ALL: every tool needs operator approval
    - DISABLED: tool calling is off, the model receives no tool schemas
    """
    READ_ONLY = "READ_ONLY"
    CONFIRM_WRITES = "CONFIRM_WRITES"
    CONFIRM_ALL = "CONFIRM_ALL"
    DISABLED = "DISABLED"


class GateDecision(str, Enum):
    """Outcome of the confirmation gate for one (risk, policy) pair."""
    ALLOW = "ALLOW"
    CONFIRM = "CONFIRM"
    FORBID = "FORBID"


class ConfirmationOutcome(str, Enum):
    """Operator answer to a confirmation prompt."""
    APPROVE = "APPROVE"
    DENY = "DENY"
    CANCEL = "CANCEL"


class FailureKind(str, Enum):
    """Tag of a tool-level failure, as reported back to the model."""
    UNKNOWN_TOOL = "UnknownTool"
    INVALID_ARGUMENTS = "InvalidArguments"
    POLICY_FORBIDDEN = "PolicyForbidden"
    CONFIRMATION_DENIED = "ConfirmationDenied"
    EXECUTION_ERROR = "ExecutionError"
    CANCELLED = "Cancelled"


class MessageRole(str, Enum):
    """Author of a transcript message."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL_RESULT = "tool_result"


class LoopState(str, Enum):
    """States of the agent loop state machine."""
    AWAITING_MODEL = "AWAITING_MODEL"
    EXECUTING_TOOLS = "EXECUTING_TOOLS"
    APPENDING_RESULTS = "APPENDING_RESULTS"
    DONE = "DONE"
    FAILED = "FAILED"


class SessionStatus(str, Enum):
    """Terminal status of an agent session."""
    DONE = "DONE"
    FAILED = "FAILED"


class SessionFailureKind(str, Enum):
    """Session-fatal failure causes."""
    ITERATION_LIMIT_EXCEEDED = "IterationLimitExceeded"
    MODEL_COMMUNICATION_FAILURE = "ModelCommunicationFailure"
    CANCELLED = "Cancelled"


# ─── Audit Event ─────────────────────────────────────────────

class AuditEvent(BaseModel):
    """An immutable audit event in a session."""
    id: str = Field(default_factory=lambda: f"ev-{uuid.uuid4().hex[:8]}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    session_id: str = ""
    call_id: str = ""
    event_type: str = ""
    description: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    risk_class: RiskClass | None = None
