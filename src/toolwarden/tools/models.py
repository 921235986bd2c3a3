"""
Toolwarden Tool System Models

Data types flowing through the tool execution pipeline. Every call
requested by the model is looked up, validated, gated by the security
policy and only then executed; each stage reports through these models.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from toolwarden.core.models import FailureKind, RiskClass

ToolHandler = Callable[[dict[str, Any]], Any] | Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """A local capability the model may ask to invoke.

    The handler receives the validated argument mapping and returns
    structured data (or raises ToolExecutionError). Sync and async
    handlers are both supported.
    """
    name: str
    description: str
    parameter_schema: dict[str, Any]
    risk_class: RiskClass
    handler: ToolHandler = field(repr=False, compare=False)

    @property
    def schema(self) -> ToolSchema:
        return ToolSchema(
            name=self.name,
            description=self.description,
            parameters=self.parameter_schema,
        )


class ToolSchema(BaseModel):
    """What the model is told about one tool."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class ToolCallRequest(BaseModel):
    """One tool call parsed from a model response.

    ``raw_arguments`` is untrusted and not yet validated. It may be
    anything the provider handed back, including a JSON string that
    failed to parse.
    """
    model_config = ConfigDict(frozen=True)

    call_id: str
    tool_name: str
    raw_arguments: Any = Field(default_factory=dict)


class ToolFailure(BaseModel):
    """Why a tool call did not produce a value."""
    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    message: str
    error_kind: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ToolCallResult(BaseModel):
    """Outcome of one tool call, correlated to its request by ``call_id``."""
    model_config = ConfigDict(frozen=True)

    call_id: str
    tool_name: str
    value: Any = None
    failure: ToolFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, request: ToolCallRequest, value: Any) -> ToolCallResult:
        return cls(call_id=request.call_id, tool_name=request.tool_name, value=value)

    @classmethod
    def fail(
        cls,
        request: ToolCallRequest,
        kind: FailureKind,
        message: str,
        error_kind: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ToolCallResult:
        return cls(
            call_id=request.call_id,
            tool_name=request.tool_name,
            failure=ToolFailure(
                kind=kind,
                message=message,
                error_kind=error_kind,
                details=details or {},
            ),
        )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the provider-neutral result shape embedded in transcripts."""
        wire: dict[str, Any] = {"call_id": self.call_id, "tool_name": self.tool_name}
        if self.failure is None:
            wire["status"] = "ok"
            wire["value"] = self.value
            return wire

        wire["status"] = "error"
        wire["kind"] = self.failure.kind.value
        wire["message"] = self.failure.message
        if self.failure.error_kind:
            wire["error_kind"] = self.failure.error_kind
        if self.failure.details:
            wire["details"] = self.failure.details
        return wire


class ConfirmationRequest(BaseModel):
    """What the operator is asked to approve."""
    model_config = ConfigDict(frozen=True)

    call_id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    risk_class: RiskClass
