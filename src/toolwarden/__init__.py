"""
Toolwarden: safety-gated agentic command executor

Lets a remote language model drive local actions (files, shell, git)
through a strict request / validate / authorize / execute / report cycle.

Usage:
    from toolwarden import AgentLoop, ToolRegistry, create_builtin_tools
    from toolwarden.providers import create_provider

    registry = ToolRegistry()
    for tool in create_builtin_tools("."):
        registry.register(tool)

    loop = AgentLoop(create_provider("claude"), registry, policy=PolicyLevel.CONFIRM_WRITES)
    outcome = await loop.run_task("Summarize the README")
"""

__version__ = "0.3.0"

from toolwarden.agent import AgentLoop, AgentSession, SessionOutcome
from toolwarden.audit import AuditLog
from toolwarden.config import Settings, load_settings
from toolwarden.core.models import (
    ConfirmationOutcome,
    FailureKind,
    GateDecision,
    PolicyLevel,
    RiskClass,
)
from toolwarden.tools import (
    ToolCallRequest,
    ToolCallResult,
    ToolDefinition,
    ToolExecutionEngine,
    ToolRegistry,
)
from toolwarden.tools.builtin import create_builtin_tools

__all__ = [
    "AgentLoop",
    "AgentSession",
    "AuditLog",
    "ConfirmationOutcome",
    "FailureKind",
    "GateDecision",
    "PolicyLevel",
    "RiskClass",
    "SessionOutcome",
    "Settings",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolDefinition",
    "ToolExecutionEngine",
    "ToolRegistry",
    "__version__",
    "create_builtin_tools",
    "load_settings",
]
