"""File operation tools, confined to the workspace root.

Read-only:
- read_file: text content with an optional line cap
- list_files: directory entries, optionally recursive

Mutating:
- write_file: write text, creating parent directories
- create_directory: mkdir -p
- delete_path: remove a file, or a directory with ``recursive``
"""

from __future__ import annotations

import functools
import shutil
from typing import Any

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.sandbox import Workspace

MAX_READ_BYTES = 1_048_576
MAX_LIST_ENTRIES = 1000


def _read_file(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    path = workspace.resolve(args["path"])
    if not path.exists():
        raise FileNotFoundError(f"File not found: {args['path']}")
    if not path.is_file():
        raise ToolExecutionError("read_file", "io", f"Not a file: {args['path']}")
    size = path.stat().st_size
    if size > MAX_READ_BYTES:
        raise ToolExecutionError(
            "read_file", "io", f"File too large ({size} bytes). Max {MAX_READ_BYTES} bytes."
        )

    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    total_lines = len(lines)
    max_lines = args.get("max_lines")
    truncated = max_lines is not None and total_lines > max_lines
    if truncated:
        lines = lines[:max_lines]
    return {
        "path": workspace.relative(path),
        "content": "\n".join(lines),
        "total_lines": total_lines,
        "truncated": truncated,
    }


def _list_files(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    root = workspace.resolve(args.get("path"))
    if not root.exists():
        raise FileNotFoundError(f"Directory not found: {args.get('path', '.')}")
    if not root.is_dir():
        raise ToolExecutionError("list_files", "io", f"Not a directory: {args.get('path')}")

    recursive = args.get("recursive", False)
    include_hidden = args.get("include_hidden", False)
    candidates = root.rglob("*") if recursive else root.iterdir()

    entries: list[dict[str, Any]] = []
    truncated = False
    for entry in sorted(candidates):
        relative = entry.relative_to(root)
        if not include_hidden and any(part.startswith(".") for part in relative.parts):
            continue
        if len(entries) >= MAX_LIST_ENTRIES:
            truncated = True
            break
        entries.append(
            {
                "path": workspace.relative(entry),
                "type": "directory" if entry.is_dir() else "file",
            }
        )
    return {"path": workspace.relative(root), "entries": entries, "truncated": truncated}


def _write_file(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    path = workspace.resolve(args["path"])
    if path.is_dir():
        raise ToolExecutionError("write_file", "io", f"Path is a directory: {args['path']}")
    path.parent.mkdir(parents=True, exist_ok=True)
    existed = path.exists()
    content = args["content"]
    path.write_text(content, encoding="utf-8")
    return {
        "path": workspace.relative(path),
        "bytes_written": len(content.encode("utf-8")),
        "created": not existed,
    }


def _create_directory(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    path = workspace.resolve(args["path"])
    existed = path.is_dir()
    path.mkdir(parents=True, exist_ok=True)
    return {"path": workspace.relative(path), "created": not existed}


def _delete_path(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    path = workspace.resolve(args["path"])
    if path == workspace.root:
        raise PermissionError("Refusing to delete the workspace root")
    if not path.exists():
        raise FileNotFoundError(f"Path not found: {args['path']}")

    if path.is_dir() and not path.is_symlink():
        if not args.get("recursive", False):
            raise ToolExecutionError(
                "delete_path",
                "io",
                f"{args['path']} is a directory; pass recursive=true to delete it",
            )
        shutil.rmtree(path)
        kind = "directory"
    else:
        path.unlink()
        kind = "file"
    return {"path": workspace.relative(path), "deleted": kind}


def file_tools(workspace: Workspace) -> list[ToolDefinition]:
    """File tools bound to ``workspace``."""
    return [
        ToolDefinition(
            name="read_file",
            description=(
                "Read a text file from the workspace. Paths are relative to the "
                "workspace root. Returns the content, optionally capped to max_lines."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File path", "minLength": 1},
                    "max_lines": {
                        "type": "integer",
                        "description": "Maximum number of lines to return",
                        "minimum": 1,
                    },
                },
                "required": ["path"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=functools.partial(_read_file, workspace),
        ),
        ToolDefinition(
            name="list_files",
            description=(
                "List entries of a workspace directory. Hidden entries are skipped "
                "unless include_hidden is true."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Directory (default: workspace root)"},
                    "recursive": {"type": "boolean", "description": "Descend into subdirectories"},
                    "include_hidden": {"type": "boolean", "description": "Include dotfiles"},
                },
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=functools.partial(_list_files, workspace),
        ),
        ToolDefinition(
            name="write_file",
            description=(
                "Write text content to a workspace file, replacing it if it exists. "
                "Parent directories are created as needed."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "File path", "minLength": 1},
                    "content": {"type": "string", "description": "Full file content"},
                },
                "required": ["path", "content"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.MUTATES_WORKSPACE,
            handler=functools.partial(_write_file, workspace),
        ),
        ToolDefinition(
            name="create_directory",
            description="Create a directory (and missing parents) in the workspace.",
            parameter_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Directory path", "minLength": 1},
                },
                "required": ["path"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.MUTATES_WORKSPACE,
            handler=functools.partial(_create_directory, workspace),
        ),
        ToolDefinition(
            name="delete_path",
            description=(
                "Delete a file from the workspace. Directories are only deleted "
                "when recursive is true."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path to delete", "minLength": 1},
                    "recursive": {
                        "type": "boolean",
                        "description": "Delete a directory and everything in it",
                    },
                },
                "required": ["path"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.MUTATES_WORKSPACE,
            handler=functools.partial(_delete_path, workspace),
        ),
    ]
