"""
Toolwarden Built-in Tools

Tools registered by default for every session, all confined to one
workspace root.
"""

from __future__ import annotations

from pathlib import Path

from toolwarden.tools.builtin.code_intel import code_intel_tools
from toolwarden.tools.builtin.file_ops import file_tools
from toolwarden.tools.builtin.git import git_tools
from toolwarden.tools.builtin.search import search_tools
from toolwarden.tools.builtin.shell import shell_tools
from toolwarden.tools.builtin.web import web_tools
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.registry import ToolRegistry
from toolwarden.tools.sandbox import ProcessRunner, Workspace


def create_builtin_tools(
    workspace: Workspace | str | Path,
    runner: ProcessRunner | None = None,
) -> list[ToolDefinition]:
    """Every built-in tool, bound to ``workspace``."""
    if not isinstance(workspace, Workspace):
        workspace = Workspace(workspace)
    runner = runner or ProcessRunner()
    return [
        *file_tools(workspace),
        *search_tools(workspace),
        *code_intel_tools(workspace),
        *web_tools(),
        *git_tools(workspace, runner),
        *shell_tools(workspace, runner),
    ]


def register_all_builtins(
    registry: ToolRegistry,
    workspace: Workspace | str | Path,
    runner: ProcessRunner | None = None,
) -> None:
    """Register all built-in tools with the given registry."""
    for tool in create_builtin_tools(workspace, runner):
        registry.register(tool)


__all__ = ["create_builtin_tools", "register_all_builtins"]
