"""Code intelligence: list the definitions in a source file.

Read-only. Python files are parsed with ``ast``; classes, functions and
methods are reported with their line numbers, methods qualified by their
class. Other languages are rejected.
"""

from __future__ import annotations

import ast
import functools
from typing import Any

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError
from toolwarden.tools.models import ToolDefinition
from toolwarden.tools.sandbox import Workspace

SUPPORTED_SUFFIXES = {".py", ".pyi"}
MAX_SOURCE_BYTES = 1_048_576


def _collect(body: list[ast.stmt], scope: str, in_class: bool) -> list[dict[str, Any]]:
    definitions: list[dict[str, Any]] = []
    for node in body:
        if isinstance(node, ast.ClassDef):
            name = f"{scope}{node.name}"
            definitions.append({"name": name, "type": "class", "line": node.lineno})
            definitions.extend(_collect(node.body, f"{name}.", in_class=True))
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            definitions.append(
                {
                    "name": f"{scope}{node.name}",
                    "type": "method" if in_class else "function",
                    "line": node.lineno,
                }
            )
    return definitions


def parse_definitions(source: str, filename: str = "<source>") -> list[dict[str, Any]]:
    """Module-level and class-level definitions in ``source``, in file order.

    Raises:
        SyntaxError: If ``source`` is not valid Python.
    """
    tree = ast.parse(source, filename=filename)
    return _collect(tree.body, "", in_class=False)


def _list_code_definitions(workspace: Workspace, args: dict[str, Any]) -> dict[str, Any]:
    path = workspace.resolve(args["path"])
    if not path.exists():
        raise FileNotFoundError(f"File not found: {args['path']}")
    if not path.is_file():
        raise ToolExecutionError("list_code_definitions", "io", f"Not a file: {args['path']}")
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ToolExecutionError(
            "list_code_definitions",
            "io",
            f"Unsupported language for {args['path']} (supported: Python)",
        )
    if path.stat().st_size > MAX_SOURCE_BYTES:
        raise ToolExecutionError("list_code_definitions", "io", f"File too large: {args['path']}")

    source = path.read_text(encoding="utf-8", errors="replace")
    try:
        definitions = parse_definitions(source, filename=args["path"])
    except SyntaxError as e:
        raise ToolExecutionError(
            "list_code_definitions",
            "io",
            f"Cannot parse {args['path']}: {e.msg} (line {e.lineno})",
        ) from e
    return {"path": workspace.relative(path), "definitions": definitions}


def code_intel_tools(workspace: Workspace) -> list[ToolDefinition]:
    """Code intelligence tools bound to ``workspace``."""
    return [
        ToolDefinition(
            name="list_code_definitions",
            description=(
                "List the classes, functions and methods defined in a source file, "
                "with line numbers. Supports Python."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Source file to analyze", "minLength": 1},
                },
                "required": ["path"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=functools.partial(_list_code_definitions, workspace),
        ),
    ]
