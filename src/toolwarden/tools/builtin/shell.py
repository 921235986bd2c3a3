"""Shell command tool.

Risk: RUNS_ARBITRARY_CODE. The command runs through ``sh -c`` inside the
workspace, with the runner's timeout and output cap. A non-zero exit
status is reported as an execution failure carrying the captured output.
"""

from __future__ import annotations

from typing import Any

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.sandbox import ProcessResult, ProcessRunner, Workspace


def process_outcome(tool_name: str, result: ProcessResult) -> dict[str, Any]:
    """Turn a finished process into a tool value, raising on timeout or failure."""
    if result.timed_out:
        raise ToolExecutionError(
            tool_name,
            "timeout",
            f"Command exceeded its time limit: {result.command}",
            details={"command": result.command},
        )
    payload = {
        "exit_code": result.exit_code,
        "stdout": result.stdout,
        "stderr": result.stderr,
        "truncated": result.truncated,
        "duration_ms": result.duration_ms,
    }
    if result.exit_code != 0:
        raise ToolExecutionError(
            tool_name,
            "process_exit",
            f"Command exited with status {result.exit_code}",
            details=payload,
        )
    return payload


def shell_tools(workspace: Workspace, runner: ProcessRunner) -> list[ToolDefinition]:
    """The run_shell tool bound to ``workspace`` and ``runner``."""

    async def _run_shell(args: dict[str, Any]) -> dict[str, Any]:
        cwd = workspace.resolve(args.get("working_directory"))
        result = await runner.run_shell(
            args["command"],
            cwd=cwd,
            timeout=args.get("timeout_seconds"),
        )
        return process_outcome("run_shell", result)

    return [
        ToolDefinition(
            name="run_shell",
            description=(
                "Run a shell command (sh -c) in the workspace. Returns exit code, "
                "stdout and stderr. Non-zero exit codes are reported as errors."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Command line to run", "minLength": 1},
                    "working_directory": {
                        "type": "string",
                        "description": "Directory to run in, relative to the workspace root",
                    },
                    "timeout_seconds": {
                        "type": "number",
                        "description": "Kill the command after this many seconds",
                        "minimum": 1,
                        "maximum": 3600,
                    },
                },
                "required": ["command"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.RUNS_ARBITRARY_CODE,
            handler=_run_shell,
        ),
    ]
