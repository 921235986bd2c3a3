"""
Toolwarden User-Defined Tools

Tools declared in configuration as a command template. Each ``{name}``
placeholder in the template is replaced by the shell-quoted value of the
argument with that name; only scalar parameters may be used as
placeholders. The resulting command runs through the shared ProcessRunner.

User tools are registered through the ordinary registry contract, so a
name clash with a built-in is a DuplicateToolError like any other.
"""

from __future__ import annotations

import json
import re
import shlex
from typing import Any

from pydantic import BaseModel, Field, field_validator

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolRegistrationError, ToolwardenError
from toolwarden.logging import get_logger
from toolwarden.tools.builtin.shell import process_outcome
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.registry import ToolRegistry
from toolwarden.tools.sandbox import ProcessRunner, Workspace

logger = get_logger("toolwarden.tools.user_defined")

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")
_SCALAR_TYPES = {"string", "integer", "number", "boolean"}


class UserToolConfig(BaseModel):
    """A tool declared in configuration."""

    name: str
    description: str
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    command_template: str
    risk_class: RiskClass = RiskClass.RUNS_ARBITRARY_CODE

    @field_validator("input_schema", mode="before")
    @classmethod
    def _parse_schema(cls, value: Any) -> Any:
        # Allow the schema as an inline JSON string
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError as e:
                raise ValueError(f"input_schema is not valid JSON: {e}") from e
        return value


def _render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_command(template: str, arguments: dict[str, Any]) -> str:
    """Substitute shell-quoted argument values into ``template``.

    Placeholders for omitted optional arguments become empty strings.
    """

    def replace(match: re.Match[str]) -> str:
        value = arguments.get(match.group(1))
        if value is None:
            return "''"
        return shlex.quote(_render_value(value))

    return _PLACEHOLDER.sub(replace, template)


def build_user_tool(
    config: UserToolConfig,
    runner: ProcessRunner,
    workspace: Workspace | None = None,
) -> ToolDefinition:
    """Build a ToolDefinition from a user tool config.

    Raises:
        ToolRegistrationError: If a placeholder names an undeclared or
            non-scalar parameter.
    """
    properties = config.input_schema.get("properties") or {}
    for placeholder in _PLACEHOLDER.findall(config.command_template):
        spec = properties.get(placeholder)
        if not isinstance(spec, dict):
            raise ToolRegistrationError(
                config.name, f"placeholder '{{{placeholder}}}' is not a declared parameter"
            )
        declared = spec.get("type")
        types = declared if isinstance(declared, list) else [declared]
        # "null" may accompany a scalar type; it renders as an empty string
        non_null = [t for t in types if t != "null"]
        if not non_null or not all(isinstance(t, str) and t in _SCALAR_TYPES for t in non_null):
            raise ToolRegistrationError(
                config.name,
                f"placeholder '{{{placeholder}}}' must refer to a string, number or boolean parameter",
            )

    template = config.command_template
    cwd = workspace.root if workspace is not None else None

    async def _run(args: dict[str, Any]) -> dict[str, Any]:
        command = render_command(template, args)
        result = await runner.run_shell(command, cwd=cwd)
        return process_outcome(config.name, result)

    return ToolDefinition(
        name=config.name,
        description=config.description,
        parameter_schema=config.input_schema,
        risk_class=config.risk_class,
        handler=_run,
    )


def register_user_tools(
    registry: ToolRegistry,
    configs: list[UserToolConfig],
    runner: ProcessRunner,
    workspace: Workspace | None = None,
) -> list[str]:
    """Register user tools, skipping (and logging) the ones that are invalid.

    Returns the names that were registered.
    """
    registered: list[str] = []
    for config in configs:
        try:
            registry.register(build_user_tool(config, runner, workspace))
        except ToolwardenError as e:
            logger.warning(
                "Skipping user tool: %s",
                e,
                extra={"tool_name": config.name},
            )
            continue
        registered.append(config.name)
    return registered
