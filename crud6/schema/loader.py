"""
Schema file discovery and loading.

Schemas live under the configured schema path as ``{model}.json``. A schema
for a named connection may be placed in ``{connection}/{model}.json`` and
takes precedence over the shared file.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from crud6.config import get_settings
from crud6.exceptions import SchemaValidationException

logger = logging.getLogger(__name__)

SCHEMA_DEFAULTS: Dict[str, Any] = {
    "primary_key": "id",
    "timestamps": True,
    "soft_delete": False,
}


def schema_root() -> Path:
    return Path(get_settings().schema_path)


def resolve_path(model: str, connection: Optional[str] = None) -> Tuple[Optional[Path], bool]:
    """Return ``(path, from_connection_folder)`` for the first schema file found."""
    root = schema_root()
    if connection:
        candidate = root / connection / f"{model}.json"
        if candidate.is_file():
            return candidate, True
    candidate = root / f"{model}.json"
    if candidate.is_file():
        return candidate, False
    return None, False


def load(model: str, connection: Optional[str] = None) -> Tuple[Optional[Dict[str, Any]], bool]:
    path, from_connection = resolve_path(model, connection)
    if path is None:
        logger.debug("schema_missing: model=%s connection=%s root=%s", model, connection, schema_root())
        return None, False
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise SchemaValidationException(f"Schema file '{path}' is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaValidationException(f"Schema file '{path}' must contain a JSON object")
    logger.debug("schema_loaded: model=%s path=%s", model, path)
    return data, from_connection


def apply_defaults(schema: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in SCHEMA_DEFAULTS.items():
        schema.setdefault(key, value)
    return schema
