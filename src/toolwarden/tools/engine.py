"""
Toolwarden Tool Execution Engine

Every tool call requested by the model passes through this engine:

  0. Policy DISABLED        -> PolicyForbidden
  1. Registry lookup        -> UnknownTool
  2. Argument validation    -> InvalidArguments
  3. Security gate          -> PolicyForbidden / confirmation
  4. Handler invocation     -> the only step with side effects
  5. Result wrapping        -> value, or ExecutionError(kind)

Tool-level problems come back as failed ToolCallResults; the engine never
raises for them. Task cancellation (asyncio.CancelledError) is the one
thing that always propagates.

Batches run consecutive auto-allowed read-only calls concurrently and
everything else strictly in order. Results keep the input order.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic_core import PydanticSerializationError, to_jsonable_python

from toolwarden.audit.trace_logger import AuditLog
from toolwarden.core.models import (
    AuditEvent,
    ConfirmationOutcome,
    FailureKind,
    GateDecision,
    PolicyLevel,
    RiskClass,
)
from toolwarden.exceptions import ArgumentValidationError, ToolExecutionError
from toolwarden.logging import get_logger
from toolwarden.tools.confirmation import (
    DEFAULT_CONFIRMATION_TIMEOUT,
    ConfirmationGate,
    ConfirmationPrompt,
)
from toolwarden.tools.models import (
    ConfirmationRequest,
    ToolCallRequest,
    ToolCallResult,
    ToolDefinition,
)
from toolwarden.tools.policy import SecurityPolicy
from toolwarden.tools.registry import ToolRegistry
from toolwarden.tools.schema import SchemaValidator

logger = get_logger("toolwarden.tools.engine")


@dataclass
class _Prepared:
    """A call that passed lookup and validation and has a gate decision."""

    request: ToolCallRequest
    tool: ToolDefinition
    arguments: dict[str, Any]
    decision: GateDecision

    @property
    def runs_concurrently(self) -> bool:
        return (
            self.decision == GateDecision.ALLOW
            and self.tool.risk_class == RiskClass.READ_ONLY
        )


@dataclass
class _BatchState:
    denied: bool = False
    cancelled: bool = False
    results: dict[int, ToolCallResult] = field(default_factory=dict)


class ToolExecutionEngine:
    """Runs tool calls through lookup, validation, the gate and the handler.

    Args:
        registry: The tools available to the session.
        policy: Security policy level, fixed for the engine's lifetime.
        prompt: Confirmation collaborator. Without one, every call that
            needs confirmation is denied.
        confirmation_timeout: Seconds to wait for the operator before
            denying. None waits indefinitely.
        abort_on_deny: After a denial, deny the rest of the batch's
            confirmable calls without prompting.
        max_concurrency: Upper bound on concurrently running read-only calls.
        audit_log: Optional audit trail receiving gate and execution events.
        session_id: Correlation id for logs and audit events.
        on_cancel: Invoked when the operator answers CANCEL.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        policy: PolicyLevel,
        prompt: ConfirmationPrompt | None = None,
        *,
        confirmation_timeout: float | None = DEFAULT_CONFIRMATION_TIMEOUT,
        abort_on_deny: bool = False,
        max_concurrency: int = 4,
        audit_log: AuditLog | None = None,
        session_id: str = "",
        on_cancel: Callable[[], None] | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._registry = registry
        self._policy = policy
        self._gate = ConfirmationGate(prompt, timeout=confirmation_timeout)
        self._abort_on_deny = abort_on_deny
        self._max_concurrency = max_concurrency
        self._audit_log = audit_log
        self._session_id = session_id
        self._on_cancel = on_cancel

    @property
    def policy(self) -> PolicyLevel:
        return self._policy

    # ─── Single call ────────────────────────────────────────

    async def execute_call(self, request: ToolCallRequest) -> ToolCallResult:
        """Run one call end to end and report its outcome."""
        prepared = self._prepare(request)
        if isinstance(prepared, ToolCallResult):
            return prepared
        return await self._authorize_and_run(prepared, _BatchState())

    # ─── Batch ──────────────────────────────────────────────

    async def execute_batch(self, requests: list[ToolCallRequest]) -> list[ToolCallResult]:
        """Run a batch, returning exactly one result per request, in request order."""
        state = _BatchState()
        semaphore = asyncio.Semaphore(self._max_concurrency)
        index = 0

        while index < len(requests):
            if state.cancelled:
                state.results[index] = self._cancelled(requests[index])
                index += 1
                continue

            prepared = self._prepare(requests[index])
            if isinstance(prepared, ToolCallResult):
                state.results[index] = prepared
                index += 1
                continue

            if not prepared.runs_concurrently:
                state.results[index] = await self._authorize_and_run(prepared, state)
                index += 1
                continue

            # Gather the run of consecutive auto-allowed read-only calls.
            group: list[tuple[int, _Prepared]] = [(index, prepared)]
            index += 1
            while index < len(requests):
                candidate = self._prepare(requests[index])
                if isinstance(candidate, ToolCallResult):
                    state.results[index] = candidate
                    index += 1
                    continue
                if not candidate.runs_concurrently:
                    break
                group.append((index, candidate))
                index += 1
            else:
                candidate = None

            await self._run_group(group, semaphore, state)

            if candidate is not None:
                state.results[index] = await self._authorize_and_run(candidate, state)
                index += 1

        return [state.results[i] for i in range(len(requests))]

    async def _run_group(
        self,
        group: list[tuple[int, _Prepared]],
        semaphore: asyncio.Semaphore,
        state: _BatchState,
    ) -> None:
        async def run_one(position: int, prepared: _Prepared) -> None:
            async with semaphore:
                state.results[position] = await self._invoke(prepared)

        if len(group) == 1:
            position, prepared = group[0]
            state.results[position] = await self._invoke(prepared)
            return
        logger.debug(
            "Running %d read-only calls concurrently",
            len(group),
            extra={"session_id": self._session_id or None},
        )
        await asyncio.gather(*(run_one(position, prepared) for position, prepared in group))

    # ─── Pipeline steps ─────────────────────────────────────

    def _prepare(self, request: ToolCallRequest) -> _Prepared | ToolCallResult:
        """Steps 0-3a: everything that happens before any side effect or prompt."""
        if self._policy == PolicyLevel.DISABLED:
            return self._reject(
                request,
                FailureKind.POLICY_FORBIDDEN,
                "Tool calling is disabled for this session",
            )

        tool = self._registry.lookup(request.tool_name)
        if tool is None:
            return self._reject(
                request,
                FailureKind.UNKNOWN_TOOL,
                f"No tool named '{request.tool_name}' is available",
            )

        try:
            SchemaValidator.validate(tool.parameter_schema, request.raw_arguments)
        except ArgumentValidationError as e:
            return self._reject(
                request,
                FailureKind.INVALID_ARGUMENTS,
                f"Invalid arguments for '{tool.name}': {e}",
                risk_class=tool.risk_class,
                details={"errors": e.errors},
            )

        decision = SecurityPolicy.decide(tool.risk_class, self._policy)
        self._audit(
            request,
            "GATE_DECISION",
            f"Tool '{tool.name}': {decision.value}",
            risk_class=tool.risk_class,
            details={"decision": decision.value, "policy": self._policy.value},
        )
        if decision == GateDecision.FORBID:
            return self._reject(
                request,
                FailureKind.POLICY_FORBIDDEN,
                SecurityPolicy.explain(tool.risk_class, self._policy, decision),
                risk_class=tool.risk_class,
            )

        return _Prepared(
            request=request,
            tool=tool,
            arguments=SchemaValidator.coerce(tool.parameter_schema, request.raw_arguments),
            decision=decision,
        )

    async def _authorize_and_run(self, prepared: _Prepared, state: _BatchState) -> ToolCallResult:
        request = prepared.request
        if prepared.decision == GateDecision.CONFIRM:
            if state.denied and self._abort_on_deny:
                return self._reject(
                    request,
                    FailureKind.CONFIRMATION_DENIED,
                    "Skipped: an earlier call in this batch was denied",
                    risk_class=prepared.tool.risk_class,
                )

            outcome = await self._gate.ask(
                ConfirmationRequest(
                    call_id=request.call_id,
                    tool_name=request.tool_name,
                    arguments=prepared.arguments,
                    risk_class=prepared.tool.risk_class,
                )
            )
            self._audit(
                request,
                "CONFIRMATION",
                f"Operator answered {outcome.value} for '{request.tool_name}'",
                risk_class=prepared.tool.risk_class,
                details={"outcome": outcome.value},
            )

            if outcome == ConfirmationOutcome.CANCEL:
                state.cancelled = True
                if self._on_cancel is not None:
                    self._on_cancel()
                return self._cancelled(request, "Operator cancelled the session")
            if outcome != ConfirmationOutcome.APPROVE:
                state.denied = True
                return self._reject(
                    request,
                    FailureKind.CONFIRMATION_DENIED,
                    f"Operator denied '{request.tool_name}'",
                    risk_class=prepared.tool.risk_class,
                )

        return await self._invoke(prepared)

    async def _invoke(self, prepared: _Prepared) -> ToolCallResult:
        """Step 4 and 5: call the handler and wrap whatever it produced."""
        request = prepared.request
        tool = prepared.tool
        log_extra = {
            "session_id": self._session_id or None,
            "call_id": request.call_id,
            "tool_name": tool.name,
            "risk_class": tool.risk_class.value,
        }
        logger.info("Executing tool", extra=log_extra)

        start = time.monotonic()
        try:
            # Support both sync and async handlers; sync ones run off the loop
            if inspect.iscoroutinefunction(tool.handler):
                value = tool.handler(prepared.arguments)
            else:
                value = await asyncio.to_thread(tool.handler, prepared.arguments)
            if inspect.isawaitable(value):
                value = await value
            value = to_jsonable_python(value)
        except asyncio.CancelledError:
            raise
        except ToolExecutionError as e:
            result = self._execution_failure(request, e.kind, e.reason, e.details)
        except PydanticSerializationError as e:
            result = self._execution_failure(
                request, "unexpected", f"Tool returned a value that cannot be serialized: {e}"
            )
        except TimeoutError as e:
            result = self._execution_failure(request, "timeout", str(e) or "operation timed out")
        except FileNotFoundError as e:
            result = self._execution_failure(request, "not_found", str(e))
        except PermissionError as e:
            result = self._execution_failure(request, "permission", str(e))
        except OSError as e:
            result = self._execution_failure(request, "io", str(e))
        except httpx.HTTPError as e:
            result = self._execution_failure(request, "network", str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Tool handler raised unexpectedly", extra=log_extra)
            result = self._execution_failure(
                request, "unexpected", f"{type(e).__name__}: {e}"
            )
        else:
            result = ToolCallResult.success(request, value)

        duration_ms = int((time.monotonic() - start) * 1000)
        outcome = "ok" if result.ok else "error"
        if result.ok:
            logger.info(
                "Tool finished",
                extra={**log_extra, "outcome": outcome, "duration_ms": duration_ms},
            )
        else:
            logger.warning(
                "Tool failed: %s",
                result.failure.message,
                extra={**log_extra, "outcome": outcome, "duration_ms": duration_ms},
            )
        self._audit(
            request,
            "TOOL_EXECUTED" if result.ok else "TOOL_ERROR",
            f"Tool '{tool.name}' executed in {duration_ms}ms",
            risk_class=tool.risk_class,
            details={
                "outcome": outcome,
                "duration_ms": duration_ms,
                "error_kind": result.failure.error_kind if result.failure else None,
            },
        )
        return result

    # ─── Helpers ────────────────────────────────────────────

    def _reject(
        self,
        request: ToolCallRequest,
        kind: FailureKind,
        message: str,
        risk_class: RiskClass | None = None,
        details: dict[str, Any] | None = None,
    ) -> ToolCallResult:
        logger.warning(
            "Tool call rejected: %s",
            message,
            extra={
                "session_id": self._session_id or None,
                "call_id": request.call_id,
                "tool_name": request.tool_name,
                "policy": self._policy.value,
                "outcome": kind.value,
            },
        )
        self._audit(
            request,
            "TOOL_REJECTED",
            f"Tool '{request.tool_name}' rejected: {kind.value}",
            risk_class=risk_class,
            details={"kind": kind.value, "message": message},
        )
        return ToolCallResult.fail(request, kind, message, details=details)

    def _cancelled(self, request: ToolCallRequest, message: str | None = None) -> ToolCallResult:
        return ToolCallResult.fail(
            request,
            FailureKind.CANCELLED,
            message or "Not run: the session was cancelled",
        )

    @staticmethod
    def _execution_failure(
        request: ToolCallRequest,
        error_kind: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> ToolCallResult:
        return ToolCallResult.fail(
            request,
            FailureKind.EXECUTION_ERROR,
            message,
            error_kind=error_kind,
            details=to_jsonable_python(details or {}, fallback=str),
        )

    def _audit(
        self,
        request: ToolCallRequest,
        event_type: str,
        description: str,
        risk_class: RiskClass | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if self._audit_log is None:
            return
        self._audit_log.append(
            AuditEvent(
                session_id=self._session_id,
                call_id=request.call_id,
                event_type=event_type,
                description=description,
                details={"tool_name": request.tool_name, **(details or {})},
                risk_class=risk_class,
            )
        )
