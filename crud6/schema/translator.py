"""
Schema string translation.

Strings that look like message keys (``CRUD6.CREATE``) are resolved through
the message catalog. Keys whose message needs interpolation are returned
untouched so the frontend can render them with record context.
"""
import logging
import re
from typing import Any

from crud6 import locale

logger = logging.getLogger(__name__)

MESSAGE_KEY = re.compile(r"^[A-Z][A-Z0-9_.]+\.[A-Z0-9_.]+$")
_EMPTY_INTERPOLATION = re.compile(r"\(\s*\)|<strong>\s+\(|>\s{2,}<|\s{2,}")


def translate(schema: Any) -> Any:
    if isinstance(schema, dict):
        return {key: translate(value) for key, value in schema.items()}
    if isinstance(schema, list):
        return [translate(value) for value in schema]
    if isinstance(schema, str):
        return translate_value(schema)
    return schema


def translate_value(value: str) -> str:
    if not MESSAGE_KEY.match(value):
        return value
    if not locale.has_message(value):
        logger.debug("translation_missing: key=%s", value)
        return value
    translated = locale.translate(value)
    if locale.has_placeholders(translated) or _EMPTY_INTERPOLATION.search(translated):
        return value
    return translated
