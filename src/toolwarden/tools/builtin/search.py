"""Search tools: find files by name and grep file contents.

Both are read-only and skip hidden files and directories unless asked.
Binary files are skipped by ``search_code``.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.sandbox import Workspace

DEFAULT_MAX_RESULTS = 100
MAX_SCANNED_FILE_BYTES = 1_048_576
_SKIPPED_DIRS = {".git", "node_modules", "__pycache__", ".venv", "target"}


def _walk(root: Path, include_hidden: bool) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part in _SKIPPED_DIRS for part in relative.parts[:-1]):
            continue
        if not include_hidden and any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            yield path


def _search_root(workspace: Workspace, args: dict[str, Any], tool_name: str) -> Path:
    root = workspace.resolve(args.get("path"))
    if not root.is_dir():
        raise ToolExecutionError(tool_name, "not_found", f"Not a directory: {args.get('path')}")
    return root


def _search_files(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    root = _search_root(workspace, args, "search_files")
    case_sensitive = args.get("case_sensitive", False)
    needle = args["query"] if case_sensitive else args["query"].lower()
    extensions = {
        ext.lower() if ext.startswith(".") else f".{ext.lower()}"
        for ext in args.get("extensions", [])
    }
    max_results = args.get("max_results", DEFAULT_MAX_RESULTS)

    matches: list[str] = []
    truncated = False
    for path in _walk(root, args.get("include_hidden", False)):
        name = path.name if case_sensitive else path.name.lower()
        if needle not in name:
            continue
        if extensions and path.suffix.lower() not in extensions:
            continue
        if len(matches) >= max_results:
            truncated = True
            break
        matches.append(workspace.relative(path))
    return {"matches": matches, "truncated": truncated}


def _search_code(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    root = _search_root(workspace, args, "search_code")
    flags = 0 if args.get("case_sensitive", True) else re.IGNORECASE
    try:
        pattern = re.compile(args["pattern"], flags)
    except re.error as e:
        raise ToolExecutionError("search_code", "io", f"Invalid regular expression: {e}") from e
    glob = args.get("glob")
    max_results = args.get("max_results", DEFAULT_MAX_RESULTS)

    matches: list[str] = []
    truncated = False
    for path in _walk(root, args.get("include_hidden", False)):
        if glob and not path.match(glob):
            continue
        if path.stat().st_size > MAX_SCANNED_FILE_BYTES:
            continue
        data = path.read_bytes()
        if b"\x00" in data[:8192]:
            continue
        text = data.decode("utf-8", errors="replace")
        for number, line in enumerate(text.splitlines(), start=1):
            if not pattern.search(line):
                continue
            if len(matches) >= max_results:
                truncated = True
                break
            matches.append(f"{workspace.relative(path)}:{number}:{line.strip()[:200]}")
        if truncated:
            break
    return {"matches": matches, "truncated": truncated}


def search_tools(workspace: Workspace) -> list[ToolDefinition]:
    """Search tools bound to ``workspace``."""
    return [
        ToolDefinition(
            name="search_files",
            description=(
                "Find files in the workspace whose name contains the query. "
                "Optionally filter by extension."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "Substring of the file name", "minLength": 1},
                    "path": {"type": "string", "description": "Directory to search (default: root)"},
                    "extensions": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Only match these extensions, e.g. [\"py\", \"md\"]",
                    },
                    "case_sensitive": {"type": "boolean"},
                    "include_hidden": {"type": "boolean"},
                    "max_results": {"type": "integer", "minimum": 1, "maximum": 1000},
                },
                "required": ["query"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=functools.partial(_search_files, workspace),
        ),
        ToolDefinition(
            name="search_code",
            description=(
                "Search text files in the workspace with a regular expression. "
                "Returns matches as 'path:line:text'."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Regular expression", "minLength": 1},
                    "path": {"type": "string", "description": "Directory to search (default: root)"},
                    "glob": {"type": "string", "description": "Only search files matching this glob, e.g. *.py"},
                    "case_sensitive": {"type": "boolean"},
                    "include_hidden": {"type": "boolean"},
                    "max_results": {"type": "integer", "minimum": 1, "maximum": 1000},
                },
                "required": ["pattern"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=functools.partial(_search_code, workspace),
        ),
    ]
