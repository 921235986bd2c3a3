"""The agent loop and the session/transcript types it drives."""

from toolwarden.agent.loop import AgentLoop
from toolwarden.agent.models import (
    ConversationMessage,
    FinalAnswer,
    ModelTurn,
    SessionOutcome,
    ToolCallBatch,
    Transcript,
)
from toolwarden.agent.session import AgentSession

__all__ = [
    "AgentLoop",
    "AgentSession",
    "ConversationMessage",
    "FinalAnswer",
    "ModelTurn",
    "SessionOutcome",
    "ToolCallBatch",
    "Transcript",
]
