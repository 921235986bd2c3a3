"""Shared test fixtures for the toolwarden test suite."""

import asyncio

import pytest

from toolwarden.core.models import ConfirmationOutcome, RiskClass
from toolwarden.tools.models import ToolCallRequest, ToolDefinition
from toolwarden.tools.registry import ToolRegistry
from toolwarden.tools.sandbox import ProcessRunner, RunnerConfig, Workspace


class RecordingPrompt:
    """Confirmation prompt that answers from a script and records every request."""

    def __init__(self, *answers: ConfirmationOutcome, default=ConfirmationOutcome.APPROVE):
        self._answers = list(answers)
        self._default = default
        self.requests = []
        self.active = 0
        self.max_active = 0

    async def confirm(self, request):
        self.requests.append(request)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            return self._answers.pop(0) if self._answers else self._default
        finally:
            self.active -= 1


class ScriptedClient:
    """Model client replaying scripted turns; the last turn repeats forever."""

    def __init__(self, *turns):
        self._turns = list(turns)
        self.calls = []

    async def complete(self, transcript, tools, model=None):
        self.calls.append(
            {
                "messages": [m.role.value for m in transcript],
                "tools": [t.name for t in tools],
                "model": model,
            }
        )
        turn = self._turns.pop(0) if len(self._turns) > 1 else self._turns[0]
        if isinstance(turn, BaseException):
            raise turn
        return turn


def make_tool(
    name: str,
    risk: RiskClass = RiskClass.READ_ONLY,
    handler=None,
    schema: dict | None = None,
) -> ToolDefinition:
    """Helper to create test tools."""
    return ToolDefinition(
        name=name,
        description=f"Test tool: {name}",
        parameter_schema=schema or {"type": "object", "properties": {}},
        risk_class=risk,
        handler=handler or (lambda args: f"result from {name}"),
    )


def call(tool_name: str, call_id: str = "call-1", **arguments) -> ToolCallRequest:
    return ToolCallRequest(call_id=call_id, tool_name=tool_name, raw_arguments=arguments)


@pytest.fixture
def workspace(tmp_path):
    return Workspace(tmp_path)


@pytest.fixture
def runner():
    return ProcessRunner(RunnerConfig(timeout_seconds=10.0, max_output_bytes=4096))


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def tool_factory():
    return make_tool


@pytest.fixture
def prompt_factory():
    return RecordingPrompt


@pytest.fixture
def client_factory():
    return ScriptedClient


@pytest.fixture
def call_factory():
    return call
