"""Utility functions for tool schema generation and validation."""

from __future__ import annotations

import inspect
import types
import typing
from collections.abc import Callable
from typing import Any, get_type_hints

from jsonschema import Draft202012Validator, SchemaError, ValidationError
from jsonschema.exceptions import best_match

from switchboard.errors import ToolArgumentDecodeError, ToolSchemaError


def build_parameters_schema(func: Callable[..., Any]) -> dict[str, Any]:
    """Build a JSON Schema object from a function's signature and type hints.

    Parameters without a default are required. Defaults are recorded in the
    property schema.
    """
    schema: dict[str, Any] = {
        "type": "object",
        "properties": {},
        "required": [],
    }

    try:
        hints = get_type_hints(func)
    except Exception:
        hints = {}

    sig = inspect.signature(func)

    for param_name, param in sig.parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue

        param_schema = type_to_json_schema(hints.get(param_name, str))

        if param.default is not inspect.Parameter.empty:
            param_schema["default"] = param.default
        else:
            schema["required"].append(param_name)

        schema["properties"][param_name] = param_schema

    return schema


def type_to_json_schema(python_type: Any) -> dict[str, Any]:
    """Convert a Python type annotation to a JSON Schema type."""
    origin = typing.get_origin(python_type)
    args = typing.get_args(python_type)

    if origin is typing.Union or origin is types.UnionType:
        # Optional[T]
        non_none_types = [t for t in args if t is not type(None)]
        if len(non_none_types) == 1:
            return type_to_json_schema(non_none_types[0])
        return {}
    if origin is typing.Literal:
        return {"type": "string", "enum": [str(a) for a in args]}
    if origin is list and args:
        return {"type": "array", "items": type_to_json_schema(args[0])}
    if origin is dict and len(args) >= 2:
        return {"type": "object", "additionalProperties": type_to_json_schema(args[1])}

    type_map: dict[Any, dict[str, Any]] = {
        str: {"type": "string"},
        int: {"type": "integer"},
        float: {"type": "number"},
        bool: {"type": "boolean"},
        list: {"type": "array"},
        dict: {"type": "object"},
        Any: {},
    }
    return dict(type_map.get(python_type, {"type": "string"}))


def validate_parameters(
    tool_name: str,
    parameters: dict[str, Any],
    parameters_schema: dict[str, Any] | None,
) -> None:
    """Validate parameters against a tool's JSON Schema.

    Raises:
        ToolSchemaError: The schema is not valid JSON Schema.
        ToolArgumentDecodeError: The parameters do not satisfy the schema.
    """
    if not parameters_schema:
        return

    try:
        Draft202012Validator.check_schema(parameters_schema)
    except SchemaError as e:
        raise ToolSchemaError(tool_name, e) from e

    error: ValidationError | None = best_match(Draft202012Validator(parameters_schema).iter_errors(parameters))
    if error is not None:
        raise ToolArgumentDecodeError(tool_name, repr(parameters), error) from error
