"""Tests for configuration-declared command tools."""

import pytest
from pydantic import ValidationError

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError, ToolRegistrationError
from toolwarden.tools.user_defined import (
    UserToolConfig,
    build_user_tool,
    register_user_tools,
    render_command,
)

ECHO_SCHEMA = {
    "type": "object",
    "properties": {
        "message": {"type": "string"},
        "loud": {"type": "boolean"},
    },
    "required": ["message"],
}


def _config(**overrides):
    data = {
        "name": "say",
        "description": "Echo a message",
        "input_schema": ECHO_SCHEMA,
        "command_template": "echo {message}",
    }
    data.update(overrides)
    return UserToolConfig(**data)


class TestRenderCommand:
    def test_values_are_shell_quoted(self):
        assert render_command("echo {m}", {"m": "a; rm -rf /"}) == "echo 'a; rm -rf /'"

    def test_scalars(self):
        assert render_command("x {a} {b} {c}", {"a": 3, "b": True, "c": False}) == "x 3 true false"

    def test_missing_value_is_empty_string(self):
        assert render_command("x {a}", {}) == "x ''"


class TestUserToolConfig:
    def test_defaults(self):
        config = UserToolConfig(name="t", description="d", command_template="true")
        assert config.risk_class == RiskClass.RUNS_ARBITRARY_CODE
        assert config.input_schema == {"type": "object", "properties": {}}

    def test_schema_as_json_string(self):
        config = _config(input_schema='{"type": "object", "properties": {"message": {"type": "string"}}}')
        assert config.input_schema["properties"]["message"] == {"type": "string"}

    def test_invalid_json_schema(self):
        with pytest.raises(ValidationError, match="not valid JSON"):
            _config(input_schema="{nope")


class TestBuildUserTool:
    def test_undeclared_placeholder(self):
        with pytest.raises(ToolRegistrationError, match="not a declared parameter"):
            build_user_tool(_config(command_template="echo {other}"), runner=None)

    def test_non_scalar_placeholder(self):
        schema = {"type": "object", "properties": {"items": {"type": "array"}}}
        with pytest.raises(ToolRegistrationError, match="string, number or boolean"):
            build_user_tool(_config(input_schema=schema, command_template="echo {items}"), runner=None)

    def test_nullable_scalar_placeholder(self, runner):
        schema = {"type": "object", "properties": {"who": {"type": ["string", "null"]}}}
        tool = build_user_tool(_config(input_schema=schema, command_template="echo {who}"), runner)
        assert tool.name == "say"

    @pytest.mark.parametrize("declared", [["array", "null"], ["null"], ["string", "object"]])
    def test_union_with_non_scalar_member(self, declared):
        schema = {"type": "object", "properties": {"who": {"type": declared}}}
        with pytest.raises(ToolRegistrationError, match="string, number or boolean"):
            build_user_tool(_config(input_schema=schema, command_template="echo {who}"), runner=None)

    @pytest.mark.asyncio
    async def test_runs_with_quoted_arguments(self, runner, workspace):
        tool = build_user_tool(_config(), runner, workspace)
        result = await tool.handler({"message": "hi; echo injected"})
        assert result["stdout"] == "hi; echo injected\n"

    @pytest.mark.asyncio
    async def test_failure_is_process_exit(self, runner, workspace):
        tool = build_user_tool(_config(command_template="exit 4", input_schema={"type": "object"}), runner, workspace)
        with pytest.raises(ToolExecutionError) as exc_info:
            await tool.handler({})
        assert exc_info.value.kind == "process_exit"

    @pytest.mark.asyncio
    async def test_runs_in_workspace_root(self, runner, workspace):
        tool = build_user_tool(_config(command_template="pwd", input_schema={"type": "object"}), runner, workspace)
        result = await tool.handler({})
        assert result["stdout"].strip() == str(workspace.root)


class TestRegisterUserTools:
    def test_invalid_tools_are_skipped(self, registry, runner, tool_factory):
        registry.register(tool_factory("taken"))
        configs = [
            _config(),
            _config(name="taken"),
            _config(name="broken", command_template="echo {ghost}"),
            _config(name="bad name!"),
            _config(name="shout", risk_class="READ_ONLY"),
        ]

        registered = register_user_tools(registry, configs, runner)

        assert registered == ["say", "shout"]
        assert registry.lookup("shout").risk_class == RiskClass.READ_ONLY
        assert "broken" not in registry

    def test_union_typed_placeholder_registers(self, registry, runner):
        nullable = {"type": "object", "properties": {"who": {"type": ["string", "null"]}}}
        listed = {"type": "object", "properties": {"who": {"type": ["array", "null"]}}}
        configs = [
            _config(name="greet", input_schema=nullable, command_template="echo {who}"),
            _config(name="greet_all", input_schema=listed, command_template="echo {who}"),
        ]

        registered = register_user_tools(registry, configs, runner)

        assert registered == ["greet"]
        assert "greet_all" not in registry
