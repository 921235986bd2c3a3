"""
Toolwarden Tool System

Registry, schema validation, security policy, confirmation gate and the
execution engine that ties them together.
"""

from toolwarden.tools.confirmation import (
    CallbackConfirmationPrompt,
    ConfirmationGate,
    ConfirmationPrompt,
    ConsoleConfirmationPrompt,
)
from toolwarden.tools.engine import ToolExecutionEngine
from toolwarden.tools.models import (
    ConfirmationRequest,
    ToolCallRequest,
    ToolCallResult,
    ToolDefinition,
    ToolFailure,
    ToolSchema,
)
from toolwarden.tools.policy import SecurityPolicy
from toolwarden.tools.registry import ToolRegistry
from toolwarden.tools.sandbox import ProcessResult, ProcessRunner, RunnerConfig, Workspace
from toolwarden.tools.schema import SchemaValidator

__all__ = [
    "CallbackConfirmationPrompt",
    "ConfirmationGate",
    "ConfirmationPrompt",
    "ConfirmationRequest",
    "ConsoleConfirmationPrompt",
    "ProcessResult",
    "ProcessRunner",
    "RunnerConfig",
    "SchemaValidator",
    "SecurityPolicy",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDefinition",
    "ToolExecutionEngine",
    "ToolFailure",
    "ToolRegistry",
    "ToolSchema",
    "Workspace",
]
