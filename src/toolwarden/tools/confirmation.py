"""
Toolwarden Confirmation Gate

Asks the operator whether a gated tool call may run. The prompt itself is a
collaborator (console, callback, or anything implementing
``ConfirmationPrompt``); the gate serializes prompts, applies the timeout
and fails closed on every abnormal outcome.

A timed-out or crashing prompt counts as DENY. Only an explicit APPROVE
lets a call proceed.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from toolwarden.core.models import ConfirmationOutcome, RiskClass
from toolwarden.logging import get_logger
from toolwarden.tools.models import ConfirmationRequest

logger = get_logger("toolwarden.tools.confirmation")

DEFAULT_CONFIRMATION_TIMEOUT = 300.0


@runtime_checkable
class ConfirmationPrompt(Protocol):
    """Anything that can put a tool call in front of the operator."""

    async def confirm(self, request: ConfirmationRequest) -> ConfirmationOutcome: ...


ConfirmationCallback = Callable[
    [ConfirmationRequest],
    ConfirmationOutcome | bool | Awaitable[ConfirmationOutcome | bool],
]


class CallbackConfirmationPrompt:
    """Adapts a plain callback (sync or async) into a ConfirmationPrompt.

    The callback may answer with a ConfirmationOutcome or a bool. Only
    ``True`` approves; any other value denies.
    """

    def __init__(self, callback: ConfirmationCallback):
        self._callback = callback

    async def confirm(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        result = self._callback(request)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            result = await result
        if isinstance(result, ConfirmationOutcome):
            return result
        return ConfirmationOutcome.APPROVE if result is True else ConfirmationOutcome.DENY


_RISK_STYLE = {
    RiskClass.READ_ONLY: "green",
    RiskClass.MUTATES_WORKSPACE: "yellow",
    RiskClass.RUNS_ARBITRARY_CODE: "red",
}

_ANSWERS = {
    "y": ConfirmationOutcome.APPROVE,
    "n": ConfirmationOutcome.DENY,
    "c": ConfirmationOutcome.CANCEL,
}


class ConsoleConfirmationPrompt:
    """Interactive terminal prompt rendered with rich.

    Answers: ``y`` approve, ``n`` deny, ``c`` cancel the whole session.
    The blocking read runs in a worker thread so the event loop stays free.
    """

    def __init__(self, console: Console | None = None):
        self._console = console or Console(stderr=True)

    async def confirm(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        return await asyncio.to_thread(self._ask, request)

    def _ask(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        style = _RISK_STYLE.get(request.risk_class, "white")
        body = json.dumps(request.arguments, indent=2, default=str)
        self._console.print(
            Panel(
                body,
                title=f"[bold]{request.tool_name}[/bold]  [{style}]{request.risk_class.value}[/{style}]",
                subtitle=f"call {request.call_id}",
                border_style=style,
            )
        )
        try:
            answer = Prompt.ask(
                "Run this tool? [y]es / [n]o / [c]ancel session",
                choices=list(_ANSWERS),
                default="n",
                console=self._console,
            )
        except (EOFError, KeyboardInterrupt):
            return ConfirmationOutcome.DENY
        return _ANSWERS.get(answer.strip().lower(), ConfirmationOutcome.DENY)


class ConfirmationGate:
    """Serializes operator prompts and applies the fail-closed rules."""

    def __init__(
        self,
        prompt: ConfirmationPrompt | None,
        timeout: float | None = DEFAULT_CONFIRMATION_TIMEOUT,
    ):
        self._prompt = prompt
        self._timeout = timeout
        self._lock = asyncio.Lock()

    async def ask(self, request: ConfirmationRequest) -> ConfirmationOutcome:
        """Return the operator's answer; anything but an explicit answer is DENY."""
        if self._prompt is None:
            logger.warning(
                "No confirmation prompt configured, denying",
                extra={"call_id": request.call_id, "tool_name": request.tool_name},
            )
            return ConfirmationOutcome.DENY

        async with self._lock:
            try:
                if self._timeout is None:
                    outcome = await self._prompt.confirm(request)
                else:
                    outcome = await asyncio.wait_for(
                        self._prompt.confirm(request), timeout=self._timeout
                    )
            except TimeoutError:
                logger.warning(
                    "Confirmation timed out after %ss, denying",
                    self._timeout,
                    extra={"call_id": request.call_id, "tool_name": request.tool_name},
                )
                return ConfirmationOutcome.DENY
            except Exception:
                logger.warning(
                    "Confirmation prompt failed, denying",
                    exc_info=True,
                    extra={"call_id": request.call_id, "tool_name": request.tool_name},
                )
                return ConfirmationOutcome.DENY

        if not isinstance(outcome, ConfirmationOutcome):
            return ConfirmationOutcome.DENY
        return outcome
