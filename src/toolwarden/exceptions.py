"""
Toolwarden Custom Exceptions

Structured exception hierarchy for toolwarden.
All toolwarden-specific exceptions inherit from ToolwardenError.

Exception hierarchy:
    ToolwardenError
    +-- ToolRegistrationError        (bad or late tool registration)
    |   +-- DuplicateToolError       (name already registered)
    +-- ArgumentValidationError      (arguments do not match the tool schema)
    +-- ToolExecutionError           (raised by tool handlers at execution time)
    +-- ModelCommunicationError      (model provider / transport failure)
    +-- ConfigurationError           (unreadable or invalid configuration)
    +-- SessionStateError            (agent session used out of order)

Only the registration and configuration errors escape to callers. Tool-level
problems are converted into failed ToolCallResults by the engine, and model
failures end the session with a FAILED outcome.
"""

from __future__ import annotations


class ToolwardenError(Exception):
    """Base exception for all toolwarden errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ToolRegistrationError(ToolwardenError):
    """Raised when a tool definition cannot be registered."""

    def __init__(self, tool_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Cannot register tool '{tool_name}': {message}",
            details={"tool_name": tool_name, **(details or {})},
        )
        self.tool_name = tool_name


class DuplicateToolError(ToolRegistrationError):
    """Raised when a tool name is already present in the registry."""

    def __init__(self, tool_name: str):
        super().__init__(tool_name, "a tool with this name is already registered")


class ArgumentValidationError(ToolwardenError):
    """Raised when tool-call arguments do not satisfy the parameter schema.

    Carries every problem found, not just the first one, so the model
    can fix all of them in a single retry.
    """

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors), details={"errors": list(errors)})
        self.errors = list(errors)


class ToolExecutionError(ToolwardenError):
    """Raised by a tool handler when its side effect fails.

    ``kind`` is a short machine-readable tag (``io``, ``not_found``,
    ``permission``, ``process_exit``, ``timeout``, ``network``) reported back
    to the model alongside the message.
    """

    def __init__(self, tool_name: str, kind: str, message: str, details: dict | None = None):
        super().__init__(
            f"Tool '{tool_name}' execution failed: {message}",
            details={"tool_name": tool_name, "kind": kind, **(details or {})},
        )
        self.tool_name = tool_name
        self.kind = kind
        self.reason = message


class ModelCommunicationError(ToolwardenError):
    """Raised when the model provider cannot produce a response.

    Distinct from a model that answers without calling a tool: this means
    the request itself failed (auth, transport, exhausted retries).
    """

    def __init__(
        self,
        provider_name: str,
        message: str,
        retryable: bool = True,
        details: dict | None = None,
    ):
        super().__init__(
            f"Provider '{provider_name}' error: {message}",
            details={"provider_name": provider_name, "retryable": retryable, **(details or {})},
        )
        self.provider_name = provider_name
        self.retryable = retryable


class ConfigurationError(ToolwardenError):
    """Raised when configuration files or environment overrides are invalid."""

    def __init__(self, message: str, source: str | None = None, details: dict | None = None):
        super().__init__(
            message if source is None else f"{source}: {message}",
            details={"source": source, **(details or {})},
        )
        self.source = source


class SessionStateError(ToolwardenError):
    """Raised when an agent session is run twice or concurrently."""

    def __init__(self, session_id: str, message: str):
        super().__init__(
            f"Session '{session_id}': {message}",
            details={"session_id": session_id},
        )
        self.session_id = session_id
