"""
Toolwarden Agent Loop

Drives a session's conversation with the model until it concludes:

  AWAITING_MODEL --final answer--> DONE
  AWAITING_MODEL --tool calls----> EXECUTING_TOOLS -> APPENDING_RESULTS -> AWAITING_MODEL

Before every model request the loop checks for a cancellation request and
for the iteration cap. A model communication failure ends the session
immediately. Whatever the outcome, the transcript is preserved.

The registry is sealed and the policy fixed when a session starts; the
tool schemas advertised to the model are computed once from that
snapshot.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from toolwarden.agent.models import (
    ConversationMessage,
    FinalAnswer,
    SessionOutcome,
    ToolCallBatch,
)
from toolwarden.agent.session import AgentSession
from toolwarden.audit.trace_logger import AuditLog
from toolwarden.core.models import (
    AuditEvent,
    LoopState,
    PolicyLevel,
    SessionFailureKind,
    SessionStatus,
)
from toolwarden.exceptions import ModelCommunicationError, SessionStateError
from toolwarden.logging import get_logger
from toolwarden.tools.confirmation import DEFAULT_CONFIRMATION_TIMEOUT, ConfirmationPrompt
from toolwarden.tools.engine import ToolExecutionEngine
from toolwarden.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from toolwarden.config import Settings
    from toolwarden.providers.base import ModelClient

logger = get_logger("toolwarden.agent.loop")

DEFAULT_MAX_ITERATIONS = 10


class AgentLoop:
    """Runs sessions against one model client and one tool registry.

    Args:
        client: Model client (any ModelClient implementation).
        registry: Tools available to sessions. Sealed on first run.
        policy: Security policy level applied to every session.
        model: Model identifier passed to the client. None uses its default.
        max_iterations: Maximum number of tool-result batches per session.
        prompt: Confirmation collaborator for gated tool calls.
        confirmation_timeout: Seconds before an unanswered prompt is denied.
        abort_on_deny: Deny the rest of a batch after an operator denial.
        max_concurrency: Bound on concurrently running read-only calls.
        audit_log: Optional audit trail.
    """

    def __init__(
        self,
        client: ModelClient,
        registry: ToolRegistry,
        *,
        policy: PolicyLevel = PolicyLevel.CONFIRM_WRITES,
        model: str | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        prompt: ConfirmationPrompt | None = None,
        confirmation_timeout: float | None = DEFAULT_CONFIRMATION_TIMEOUT,
        abort_on_deny: bool = False,
        max_concurrency: int = 4,
        audit_log: AuditLog | None = None,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._client = client
        self._registry = registry
        self._policy = policy
        self._model = model
        self._max_iterations = max_iterations
        self._prompt = prompt
        self._confirmation_timeout = confirmation_timeout
        self._abort_on_deny = abort_on_deny
        self._max_concurrency = max_concurrency
        self._audit_log = audit_log

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: ModelClient,
        registry: ToolRegistry,
        prompt: ConfirmationPrompt | None = None,
        audit_log: AuditLog | None = None,
    ) -> AgentLoop:
        """Build a loop from a configuration snapshot."""
        return cls(
            client,
            registry,
            policy=settings.policy,
            model=settings.model,
            max_iterations=settings.max_iterations,
            prompt=prompt,
            confirmation_timeout=settings.confirmation_timeout_seconds,
            abort_on_deny=settings.abort_on_deny,
            max_concurrency=settings.max_concurrency,
            audit_log=audit_log,
        )

    @property
    def policy(self) -> PolicyLevel:
        return self._policy

    async def run_task(self, task: str) -> SessionOutcome:
        """Create a session for ``task`` and run it to completion."""
        return await self.run(AgentSession(task))

    async def run(self, session: AgentSession) -> SessionOutcome:
        """Run ``session`` until it reaches DONE or FAILED.

        Raises:
            SessionStateError: If the session was already run, or is running.
        """
        if session.started:
            raise SessionStateError(session.session_id, "session has already been run")
        session.mark_started()

        self._registry.seal()
        policy = self._policy
        tools = self._registry.schemas_for_model(policy)
        engine = ToolExecutionEngine(
            self._registry,
            policy,
            self._prompt,
            confirmation_timeout=self._confirmation_timeout,
            abort_on_deny=self._abort_on_deny,
            max_concurrency=self._max_concurrency,
            audit_log=self._audit_log,
            session_id=session.session_id,
            on_cancel=session.cancel,
        )

        logger.info(
            "Session started with %d tools",
            len(tools),
            extra={"session_id": session.session_id, "policy": policy.value},
        )
        self._audit(
            session,
            "SESSION_START",
            session.task[:120],
            {"policy": policy.value, "tools": [t.name for t in tools]},
        )

        try:
            return await self._drive(session, engine, tools)
        except asyncio.CancelledError:
            self._finish(
                session,
                SessionStatus.FAILED,
                failure_kind=SessionFailureKind.CANCELLED,
                message="Session task was cancelled",
            )
            raise

    async def _drive(self, session: AgentSession, engine: ToolExecutionEngine, tools) -> SessionOutcome:
        while True:
            if session.cancel_requested:
                return self._finish(
                    session,
                    SessionStatus.FAILED,
                    failure_kind=SessionFailureKind.CANCELLED,
                    message="Session cancelled by the operator",
                )
            if session.iteration >= self._max_iterations:
                return self._finish(
                    session,
                    SessionStatus.FAILED,
                    failure_kind=SessionFailureKind.ITERATION_LIMIT_EXCEEDED,
                    message=f"Reached the limit of {self._max_iterations} iterations",
                )

            self._transition(session, LoopState.AWAITING_MODEL)
            try:
                turn = await self._client.complete(session.transcript, tools, self._model)
            except ModelCommunicationError as e:
                return self._finish(
                    session,
                    SessionStatus.FAILED,
                    failure_kind=SessionFailureKind.MODEL_COMMUNICATION_FAILURE,
                    message=str(e),
                )
            except Exception as e:
                logger.exception(
                    "Model client raised unexpectedly",
                    extra={"session_id": session.session_id, "iteration": session.iteration},
                )
                return self._finish(
                    session,
                    SessionStatus.FAILED,
                    failure_kind=SessionFailureKind.MODEL_COMMUNICATION_FAILURE,
                    message=f"{type(e).__name__}: {e}",
                )

            if isinstance(turn, FinalAnswer) or (
                isinstance(turn, ToolCallBatch) and not turn.requests
            ):
                session.transcript.append(ConversationMessage.assistant(turn.text))
                return self._finish(session, SessionStatus.DONE, final_text=turn.text)

            session.transcript.append(ConversationMessage.assistant(turn.text, turn.requests))
            self._audit(
                session,
                "MODEL_TURN",
                f"Model requested {len(turn.requests)} tool call(s)",
                {"tools": [r.tool_name for r in turn.requests]},
            )

            self._transition(session, LoopState.EXECUTING_TOOLS)
            results = await engine.execute_batch(turn.requests)

            self._transition(session, LoopState.APPENDING_RESULTS)
            session.transcript.append(ConversationMessage.tool_results(results))
            session.iteration += 1

    # ─── Helpers ────────────────────────────────────────────

    def _transition(self, session: AgentSession, state: LoopState) -> None:
        session.state = state
        logger.debug(
            "Loop state %s",
            state.value,
            extra={"session_id": session.session_id, "iteration": session.iteration},
        )

    def _finish(
        self,
        session: AgentSession,
        status: SessionStatus,
        final_text: str = "",
        failure_kind: SessionFailureKind | None = None,
        message: str = "",
    ) -> SessionOutcome:
        session.state = LoopState.DONE if status == SessionStatus.DONE else LoopState.FAILED
        outcome = SessionOutcome(
            session_id=session.session_id,
            status=status,
            final_text=final_text,
            failure_kind=failure_kind,
            message=message,
            iterations=session.iteration,
            transcript=session.transcript,
        )
        session.outcome = outcome

        log_extra = {
            "session_id": session.session_id,
            "iteration": session.iteration,
            "outcome": failure_kind.value if failure_kind else status.value,
        }
        if status == SessionStatus.DONE:
            logger.info("Session finished", extra=log_extra)
        else:
            logger.warning("Session failed: %s", message, extra=log_extra)
        self._audit(
            session,
            "SESSION_END",
            message or status.value,
            {
                "status": status.value,
                "failure_kind": failure_kind.value if failure_kind else None,
                "iterations": session.iteration,
            },
        )
        return outcome

    def _audit(self, session: AgentSession, event_type: str, description: str, details: dict) -> None:
        if self._audit_log is None:
            return
        self._audit_log.append(
            AuditEvent(
                session_id=session.session_id,
                event_type=event_type,
                description=description,
                details=details,
            )
        )
