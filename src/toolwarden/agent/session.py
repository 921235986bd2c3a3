"""
Toolwarden Agent Session

State of one task from start to its terminal outcome: the transcript,
the iteration counter, the current loop state and the cancellation flag.
"""

from __future__ import annotations

import uuid

from toolwarden.agent.models import ConversationMessage, SessionOutcome, Transcript
from toolwarden.core.models import LoopState


class AgentSession:
    """One task's conversation with the model.

    A session runs at most once. ``cancel()`` is cooperative: the loop
    notices it at the next iteration boundary and ends the session in
    FAILED(Cancelled).
    """

    def __init__(self, task: str, session_id: str | None = None):
        self.session_id = session_id or f"sess-{uuid.uuid4().hex[:8]}"
        self.task = task
        self.transcript = Transcript([ConversationMessage.user(task)])
        self.iteration = 0
        self.state = LoopState.AWAITING_MODEL
        self.outcome: SessionOutcome | None = None
        self._started = False
        self._cancel_requested = False

    def cancel(self) -> None:
        """Request cancellation at the next iteration boundary."""
        self._cancel_requested = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    @property
    def started(self) -> bool:
        return self._started

    @property
    def terminal(self) -> bool:
        return self.state in (LoopState.DONE, LoopState.FAILED)

    def mark_started(self) -> None:
        self._started = True

    def __repr__(self) -> str:
        return (
            f"AgentSession(id={self.session_id!r}, state={self.state.value}, "
            f"iteration={self.iteration})"
        )
