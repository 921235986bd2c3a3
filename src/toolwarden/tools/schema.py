"""
Toolwarden Schema Validator

Checks tool-call arguments against a tool's declared parameter schema.
Supports the JSON-Schema subset tools are declared with: ``type``,
``properties``, ``required``, ``additionalProperties``, ``enum``, ``items``,
``minimum``/``maximum`` and ``minLength``/``maxLength``.

Validation collects every problem instead of stopping at the first one,
so the model can correct all of them in a single retry.
"""

from __future__ import annotations

from typing import Any

from toolwarden.exceptions import ArgumentValidationError, ToolRegistrationError
from toolwarden.logging import get_logger

logger = get_logger("toolwarden.tools.schema")

_KNOWN_TYPES = {"object", "array", "string", "integer", "number", "boolean", "null"}


def _type_matches(expected: str, value: Any) -> bool:
    # bool is a subclass of int; a boolean is never a number here
    if expected == "object":
        return isinstance(value, dict)
    if expected == "array":
        return isinstance(value, list)
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "null":
        return value is None
    return False


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class SchemaValidator:
    """
    Helper class for validating tool arguments and tool parameter schemas.
    """

    @staticmethod
    def validate(schema: dict[str, Any], arguments: Any) -> None:
        """
        Validates ``arguments`` against ``schema``.

        Args:
            schema: The tool's parameter schema (an object schema).
            arguments: The raw arguments supplied by the model.

        Raises:
            ArgumentValidationError: Listing every violation found.
        """
        if not isinstance(arguments, dict):
            raise ArgumentValidationError(
                [f"arguments must be an object, got {_describe(arguments)}"]
            )

        errors: list[str] = []
        SchemaValidator._check_value(schema, arguments, "arguments", errors)
        if errors:
            logger.debug("Argument validation failed: %s", "; ".join(errors))
            raise ArgumentValidationError(errors)

    @staticmethod
    def coerce(schema: dict[str, Any], arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Returns a copy of validated ``arguments`` with integer-valued floats
        (``2.0``) turned into ints wherever the schema declares ``integer``.
        """
        return SchemaValidator._coerce_value(schema, arguments)

    @staticmethod
    def check_schema(tool_name: str, schema: Any) -> None:
        """
        Verifies a parameter schema is well formed enough to validate against.

        Raises:
            ToolRegistrationError: If the schema is not an object schema or
                declares properties the validator cannot interpret.
        """
        if not isinstance(schema, dict):
            raise ToolRegistrationError(tool_name, "parameter schema must be a mapping")
        if schema.get("type") != "object":
            raise ToolRegistrationError(tool_name, "parameter schema must have type 'object'")

        problems: list[str] = []
        SchemaValidator._check_node(schema, "schema", problems)
        if problems:
            raise ToolRegistrationError(
                tool_name, "; ".join(problems), details={"problems": problems}
            )

    # ─── Internals ──────────────────────────────────────────

    @staticmethod
    def _check_node(node: Any, path: str, problems: list[str]) -> None:
        if not isinstance(node, dict):
            problems.append(f"{path} must be a mapping")
            return

        declared = node.get("type")
        if declared is not None:
            types = declared if isinstance(declared, list) else [declared]
            for t in types:
                if t not in _KNOWN_TYPES:
                    problems.append(f"{path}: unknown type {t!r}")

        properties = node.get("properties")
        if properties is not None:
            if not isinstance(properties, dict):
                problems.append(f"{path}.properties must be a mapping")
            else:
                for name, sub in properties.items():
                    SchemaValidator._check_node(sub, f"{path}.{name}", problems)

        required = node.get("required")
        if required is not None:
            if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
                problems.append(f"{path}.required must be a list of strings")

        enum = node.get("enum")
        if enum is not None and not isinstance(enum, list):
            problems.append(f"{path}.enum must be a list")

        items = node.get("items")
        if items is not None:
            SchemaValidator._check_node(items, f"{path}[]", problems)

    @staticmethod
    def _check_value(schema: dict[str, Any], value: Any, path: str, errors: list[str]) -> None:
        declared = schema.get("type")
        if declared is not None:
            types = declared if isinstance(declared, list) else [declared]
            if not any(_type_matches(t, value) for t in types):
                errors.append(
                    f"{path}: expected {' or '.join(types)}, got {_describe(value)}"
                )
                return

        if "enum" in schema and value not in schema["enum"]:
            allowed = ", ".join(repr(v) for v in schema["enum"])
            errors.append(f"{path}: {value!r} is not one of {allowed}")

        if isinstance(value, str):
            min_len = schema.get("minLength")
            max_len = schema.get("maxLength")
            if min_len is not None and len(value) < min_len:
                errors.append(f"{path}: shorter than {min_len} characters")
            if max_len is not None and len(value) > max_len:
                errors.append(f"{path}: longer than {max_len} characters")

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            minimum = schema.get("minimum")
            maximum = schema.get("maximum")
            if minimum is not None and value < minimum:
                errors.append(f"{path}: {value} is less than minimum {minimum}")
            if maximum is not None and value > maximum:
                errors.append(f"{path}: {value} is greater than maximum {maximum}")

        if isinstance(value, list) and isinstance(schema.get("items"), dict):
            for index, item in enumerate(value):
                SchemaValidator._check_value(schema["items"], item, f"{path}[{index}]", errors)

        if isinstance(value, dict):
            SchemaValidator._check_object(schema, value, path, errors)

    @staticmethod
    def _coerce_value(schema: Any, value: Any) -> Any:
        if not isinstance(schema, dict):
            return value

        declared = schema.get("type")
        types = declared if isinstance(declared, list) else [declared]
        if isinstance(value, float) and "integer" in types and "number" not in types:
            return int(value) if value.is_integer() else value

        if isinstance(value, list):
            return [SchemaValidator._coerce_value(schema.get("items"), item) for item in value]

        if isinstance(value, dict):
            properties = schema.get("properties") or {}
            return {
                name: SchemaValidator._coerce_value(properties.get(name), sub_value)
                for name, sub_value in value.items()
            }
        return value

    @staticmethod
    def _check_object(
        schema: dict[str, Any], value: dict[str, Any], path: str, errors: list[str]
    ) -> None:
        properties: dict[str, Any] = schema.get("properties") or {}

        for name in schema.get("required") or []:
            if name not in value:
                errors.append(f"{path}: missing required field '{name}'")

        if schema.get("additionalProperties") is False:
            for name in value:
                if name not in properties:
                    errors.append(f"{path}: unknown field '{name}'")

        for name, sub_value in value.items():
            sub_schema = properties.get(name)
            if isinstance(sub_schema, dict):
                SchemaValidator._check_value(sub_schema, sub_value, f"{path}.{name}", errors)
