"""Structural validation of loaded schemas."""
from typing import Any, Dict

from crud6.exceptions import SchemaValidationException

REQUIRED_KEYS = ("model", "table", "fields")


def validate(schema: Dict[str, Any], model: str) -> None:
    missing = [key for key in REQUIRED_KEYS if key not in schema]
    if missing:
        raise SchemaValidationException(
            f"Schema for model '{model}' is missing required keys: {', '.join(missing)}"
        )
    if schema["model"] != model:
        raise SchemaValidationException(
            f"Schema model '{schema['model']}' does not match requested model '{model}'"
        )
    fields = schema["fields"]
    if not isinstance(fields, dict) or not fields:
        raise SchemaValidationException(f"Schema for model '{model}' must define at least one field")


def has_permission(schema: Dict[str, Any], operation: str) -> bool:
    permissions = schema.get("permissions") or {}
    return bool(permissions.get(operation))
