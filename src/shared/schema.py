"""JSON Schema validation utilities.

The same rules apply to server configuration and to handler input:
unknown fields are dropped, declared defaults fill absent fields,
and anything left that violates the schema is a ``SchemaViolation``.
"""

import copy
from collections.abc import Mapping, Sequence
from types import MappingProxyType
from typing import Any, Optional

from jsonschema import Draft7Validator

from shared.errors import SchemaViolation

EMPTY_OBJECT_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


def validate_schema(data: Any, schema: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate data against a JSON Schema.

    Args:
        data: The data to validate
        schema: JSON Schema to validate against

    Returns:
        Tuple of (is_valid, list of error messages)
    """
    if not schema:
        return True, []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))

    if not errors:
        return True, []

    error_messages = [
        f"{'.'.join(str(p) for p in e.path)}: {e.message}" if e.path else e.message
        for e in errors
    ]

    return False, error_messages


def schema_defaults(schema: dict[str, Any]) -> dict[str, Any]:
    """Return the declared default of every property that has one."""
    return {
        name: copy.deepcopy(prop["default"])
        for name, prop in schema.get("properties", {}).items()
        if "default" in prop
    }


def apply_schema(data: Optional[Mapping[str, Any]], schema: dict[str, Any]) -> dict[str, Any]:
    """
    Drop unknown fields, fill defaults and validate.

    ``None`` values are treated as absent.

    Args:
        data: Raw input mapping (None means no input)
        schema: Object JSON Schema with ``properties``

    Returns:
        The cleaned input

    Raises:
        SchemaViolation: If the input is not an object or violates the schema
    """
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise SchemaViolation([f"expected an object, got {type(data).__name__}"])

    properties = schema.get("properties", {})
    cleaned = {
        key: value
        for key, value in data.items()
        if key in properties and value is not None
    }

    for name, default in schema_defaults(schema).items():
        cleaned.setdefault(name, default)

    is_valid, errors = validate_schema(cleaned, schema)
    if not is_valid:
        raise SchemaViolation(errors)

    # Draft 7 accepts 10.0 as an integer; hand handlers a real int
    for name, value in cleaned.items():
        if isinstance(value, float) and properties[name].get("type") == "integer":
            cleaned[name] = int(value)

    return cleaned


def resolve(
    schema: dict[str, Any],
    sources: Sequence[Optional[Mapping[str, Any]]]
) -> Mapping[str, Any]:
    """
    Merge configuration sources and validate the result.

    Sources are ordered lowest to highest precedence. A key present in a
    later source overwrites earlier ones; absent keys fall through.
    Nothing is read from the environment or disk here.

    Args:
        schema: Configuration JSON Schema
        sources: Pre-gathered source mappings

    Returns:
        Read-only resolved configuration

    Raises:
        SchemaViolation: If a required field is missing or a value is invalid
    """
    merged: dict[str, Any] = {}
    for source in sources:
        if not source:
            continue
        merged.update({k: v for k, v in source.items() if v is not None})

    return MappingProxyType(apply_schema(merged, schema))
