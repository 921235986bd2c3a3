"""
Toolwarden Tool Registry

Central registry for all tools the model may call. Built-in and
user-defined tools go through the same ``register`` contract. The registry
is sealed when a session starts; from then on it is read-only.
"""

from __future__ import annotations

import copy
import dataclasses
import re

from toolwarden.core.models import PolicyLevel, RiskClass
from toolwarden.exceptions import DuplicateToolError, ToolRegistrationError
from toolwarden.logging import get_logger
from toolwarden.tools.models import ToolDefinition, ToolSchema
from toolwarden.tools.schema import SchemaValidator

logger = get_logger("toolwarden.tools.registry")

# Names every supported provider accepts for function tools.
_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ToolRegistry:
    """Name-keyed set of ToolDefinitions, kept in registration order."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._sealed = False

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool.

        The parameter schema is deep-copied so later changes to the
        caller's dict cannot alter validation.

        Raises:
            DuplicateToolError: If the name is already taken. The registry
                is left unchanged.
            ToolRegistrationError: If the registry is sealed, or the name,
                risk class, handler or schema is unusable.
        """
        if self._sealed:
            raise ToolRegistrationError(tool.name, "registry is sealed for the running session")
        if not isinstance(tool.name, str) or not _NAME_PATTERN.match(tool.name):
            raise ToolRegistrationError(
                str(tool.name), "name must be 1-64 letters, digits, '_' or '-'"
            )
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        if not isinstance(tool.risk_class, RiskClass):
            raise ToolRegistrationError(tool.name, f"invalid risk class {tool.risk_class!r}")
        if not callable(tool.handler):
            raise ToolRegistrationError(tool.name, "handler is not callable")
        SchemaValidator.check_schema(tool.name, tool.parameter_schema)

        stored = dataclasses.replace(
            tool, parameter_schema=copy.deepcopy(tool.parameter_schema)
        )
        self._tools[tool.name] = stored
        logger.debug(
            "Registered tool",
            extra={"tool_name": tool.name, "risk_class": tool.risk_class.value},
        )

    def lookup(self, name: str) -> ToolDefinition | None:
        """Look up a registered tool by name."""
        return self._tools.get(name)

    def get_all(self) -> list[ToolDefinition]:
        """Return all registered tools in registration order."""
        return list(self._tools.values())

    def schemas_for_model(self, policy: PolicyLevel) -> list[ToolSchema]:
        """Schemas advertised to the model under ``policy``.

        Empty when tool calling is disabled, so the model is never told
        about a tool it cannot use.
        """
        if policy == PolicyLevel.DISABLED:
            return []
        return [tool.schema for tool in self._tools.values()]

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
