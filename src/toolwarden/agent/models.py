"""
Toolwarden Conversation Models

The transcript exchanged with the model and the turn types a model client
returns. The transcript is append-only and owned by one session.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from toolwarden.core.models import MessageRole, SessionFailureKind, SessionStatus
from toolwarden.tools.models import ToolCallRequest, ToolCallResult


class ConversationMessage(BaseModel):
    """One message in the transcript.

    Assistant messages that request tools carry the ordered requests;
    tool_result messages carry the full result batch for those requests.
    """
    model_config = ConfigDict(frozen=True)

    role: MessageRole
    text: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    results: list[ToolCallResult] = Field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> ConversationMessage:
        return cls(role=MessageRole.USER, text=text)

    @classmethod
    def assistant(
        cls, text: str = "", tool_calls: list[ToolCallRequest] | None = None
    ) -> ConversationMessage:
        return cls(role=MessageRole.ASSISTANT, text=text, tool_calls=list(tool_calls or []))

    @classmethod
    def tool_results(cls, results: list[ToolCallResult]) -> ConversationMessage:
        return cls(role=MessageRole.TOOL_RESULT, results=list(results))


class Transcript:
    """Ordered, append-only sequence of conversation messages."""

    def __init__(self, messages: list[ConversationMessage] | None = None):
        self._messages: list[ConversationMessage] = list(messages or [])

    def append(self, message: ConversationMessage) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> ConversationMessage | None:
        return self._messages[-1] if self._messages else None

    def to_dicts(self) -> list[dict]:
        """JSON-compatible dump, e.g. for persisting a failed session."""
        return [m.model_dump(mode="json") for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self._messages)


# ─── Model Turns ─────────────────────────────────────────────

class FinalAnswer(BaseModel):
    """The model answered without requesting any tool."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["final"] = "final"
    text: str = ""


class ToolCallBatch(BaseModel):
    """The model requested one or more tool calls, in order."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["tool_calls"] = "tool_calls"
    requests: list[ToolCallRequest]
    text: str = ""


ModelTurn = FinalAnswer | ToolCallBatch


# ─── Session Outcome ─────────────────────────────────────────

class SessionOutcome(BaseModel):
    """How a session ended. The transcript is preserved either way."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    status: SessionStatus
    final_text: str = ""
    failure_kind: SessionFailureKind | None = None
    message: str = ""
    iterations: int = 0
    transcript: Transcript

    @property
    def succeeded(self) -> bool:
        return self.status == SessionStatus.DONE
