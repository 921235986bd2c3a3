"""Version control tools backed by the ``git`` executable.

- git_inspect (READ_ONLY): status, diff or log of the workspace repository
- git_commit (MUTATES_WORKSPACE): stage paths and commit
"""

from __future__ import annotations

from typing import Any

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError
from toolwarden.tools.builtin.shell import process_outcome
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.sandbox import ProcessRunner, Workspace

_INSPECT_COMMANDS = {
    "status": ["git", "status", "--short", "--branch"],
    "diff": ["git", "diff"],
    "log": ["git", "log", "--oneline", "--decorate"],
}


def git_tools(workspace: Workspace, runner: ProcessRunner) -> list[ToolDefinition]:
    """Git tools bound to ``workspace`` and ``runner``."""

    async def _git(tool_name: str, argv: list[str]) -> dict[str, Any]:
        try:
            result = await runner.run_exec(argv, cwd=workspace.root)
        except FileNotFoundError as e:
            raise ToolExecutionError(tool_name, "not_found", "git executable not found") from e
        return process_outcome(tool_name, result)

    async def _git_inspect(args: dict[str, Any]) -> dict[str, Any]:
        operation = args["operation"]
        argv = list(_INSPECT_COMMANDS[operation])
        if operation == "diff" and args.get("staged"):
            argv.append("--cached")
        if operation == "log":
            argv.append(f"-n{args.get('max_count', 20)}")
        if args.get("path"):
            argv += ["--", workspace.relative(workspace.resolve(args["path"]))]
        outcome = await _git("git_inspect", argv)
        return {"operation": operation, "output": outcome["stdout"], "truncated": outcome["truncated"]}

    async def _git_commit(args: dict[str, Any]) -> dict[str, Any]:
        paths = [workspace.relative(workspace.resolve(p)) for p in args.get("paths", [])]
        add_argv = ["git", "add", "--"] + (paths or ["."])
        await _git("git_commit", add_argv)
        outcome = await _git("git_commit", ["git", "commit", "-m", args["message"]])
        return {"committed": True, "output": outcome["stdout"]}

    return [
        ToolDefinition(
            name="git_inspect",
            description=(
                "Inspect the workspace git repository: 'status', 'diff' "
                "(optionally staged) or 'log'. Optionally limited to a path."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "operation": {"type": "string", "enum": ["status", "diff", "log"]},
                    "path": {"type": "string", "description": "Limit to this path"},
                    "staged": {"type": "boolean", "description": "diff: show staged changes"},
                    "max_count": {"type": "integer", "minimum": 1, "maximum": 500},
                },
                "required": ["operation"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=_git_inspect,
        ),
        ToolDefinition(
            name="git_commit",
            description=(
                "Stage the given paths (default: everything) and create a commit "
                "with the message."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "message": {"type": "string", "description": "Commit message", "minLength": 1},
                    "paths": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Paths to stage",
                    },
                },
                "required": ["message"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.MUTATES_WORKSPACE,
            handler=_git_commit,
        ),
    ]
