"""
Field types, value casting, validation rules and password hashing.

Each schema field carries a ``type`` that decides how submitted values are
cast before they reach the database, plus an optional ``validation`` block
checked before any write.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from argon2 import PasswordHasher
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crud6.db.tables import get_table
from crud6.exceptions import ValidationException

logger = logging.getLogger(__name__)

VIRTUAL_TYPES = ("multiselect", "computed")
FALSE_STRINGS = {"0", "false", "no", "off", ""}

_TEXTAREA = re.compile(r"^(?:text|textarea)(?:-r\d+)?(?:c\d+)?$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)
_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

_password_hasher = PasswordHasher()


def is_boolean_type(field_type: Optional[str]) -> bool:
    return field_type == "boolean" or (isinstance(field_type, str) and field_type.startswith("boolean-"))


def is_virtual(field: Dict[str, Any]) -> bool:
    return field.get("type") in VIRTUAL_TYPES or bool(field.get("computed"))


def is_textarea(field_type: str) -> bool:
    return bool(_TEXTAREA.match(field_type or ""))


def transform(field_type: Optional[str], value: Any) -> Any:
    """Cast ``value`` for storage according to the field type.

    Raises ``ValueError`` when a numeric value cannot be converted.
    """
    if value is None:
        return None
    field_type = field_type or "string"

    if field_type in ("integer", "int"):
        if value == "":
            return None
        return int(value)
    if field_type in ("float", "decimal"):
        if value == "":
            return None
        return float(value)
    if is_boolean_type(field_type):
        if isinstance(value, str):
            return value.strip().lower() not in FALSE_STRINGS
        return bool(value)
    if field_type in ("json", "array"):
        if isinstance(value, str):
            try:
                json.loads(value)
                return value
            except ValueError:
                return json.dumps(value)
        return json.dumps(value)
    if field_type in ("date", "datetime", "timestamp"):
        return value
    if field_type == "smartlookup":
        if value == "":
            return None
        return int(value)
    return str(value)


def _label(name: str, field: Dict[str, Any]) -> str:
    return field.get("label") or name.replace("_", " ").capitalize()


def _rule_message(rule: Any, default: str) -> str:
    if isinstance(rule, dict) and rule.get("message"):
        return rule["message"]
    return default


def is_required(field: Dict[str, Any]) -> bool:
    validation = field.get("validation") or {}
    return bool(field.get("required")) or bool(isinstance(validation, dict) and validation.get("required"))


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "") or value == []


def validate_data(
    schema: Dict[str, Any],
    data: Dict[str, Any],
    partial: bool = False,
    db: Optional[Session] = None,
    record_id: Any = None,
) -> None:
    """Check ``data`` against the field rules and raise ``ValidationException``.

    With ``partial`` only keys present in ``data`` are checked, which is what
    updates need. ``unique`` rules are only enforced when a session is given.
    """
    errors: Dict[str, List[str]] = {}

    for name, field in schema["fields"].items():
        if field.get("auto_increment") or is_virtual(field):
            continue
        if partial and name not in data:
            continue

        value = data.get(name)
        label = _label(name, field)
        messages: List[str] = []

        if _is_empty(value):
            if is_required(field) and not (name not in data and "default" in field):
                messages.append(f"{label} is required")
            if messages:
                errors[name] = messages
            continue

        validation = field.get("validation") or {}
        if not isinstance(validation, dict):
            continue
        messages.extend(_check_rules(name, label, value, validation, data))

        if validation.get("unique") and db is not None and not messages:
            if not _is_unique(db, schema, name, value, record_id):
                messages.append(_rule_message(validation["unique"], f"{label} must be unique"))

        if messages:
            errors[name] = messages

    if errors:
        logger.debug("validation_failed: model=%s fields=%s", schema.get("model"), sorted(errors))
        raise ValidationException(errors)


def _check_rules(name: str, label: str, value: Any, validation: Dict[str, Any], data: Dict[str, Any]) -> List[str]:
    messages: List[str] = []
    text = str(value)

    length = validation.get("length")
    if isinstance(length, dict):
        if length.get("min") is not None and len(text) < int(length["min"]):
            messages.append(_rule_message(length, f"{label} must be at least {length['min']} characters"))
        if length.get("max") is not None and len(text) > int(length["max"]):
            messages.append(_rule_message(length, f"{label} must be at most {length['max']} characters"))

    if validation.get("email") and not _EMAIL.match(text):
        messages.append(_rule_message(validation["email"], f"{label} must be a valid email address"))
    if validation.get("url") and not _URL.match(text):
        messages.append(_rule_message(validation["url"], f"{label} must be a valid URL"))
    if validation.get("slug") and not _SLUG.match(text):
        messages.append(_rule_message(validation["slug"], f"{label} must be a valid slug"))

    pattern = validation.get("regex")
    if pattern:
        expression = pattern.get("pattern") if isinstance(pattern, dict) else pattern
        if expression and not re.search(expression, text):
            messages.append(_rule_message(pattern, f"{label} has an invalid format"))

    if validation.get("integer"):
        if isinstance(value, bool) or not re.match(r"^-?\d+$", text.strip()):
            messages.append(_rule_message(validation["integer"], f"{label} must be an integer"))

    numeric_ok = True
    try:
        number = float(value)
    except (TypeError, ValueError):
        numeric_ok = False
        number = None
    if validation.get("numeric") and (not numeric_ok or isinstance(value, bool)):
        messages.append(_rule_message(validation["numeric"], f"{label} must be a number"))

    bounds = validation.get("range")
    if isinstance(bounds, dict) and numeric_ok:
        if bounds.get("min") is not None and number < float(bounds["min"]):
            messages.append(_rule_message(bounds, f"{label} must be at least {bounds['min']}"))
        if bounds.get("max") is not None and number > float(bounds["max"]):
            messages.append(_rule_message(bounds, f"{label} must be at most {bounds['max']}"))

    other = validation.get("matches")
    if other:
        other_name = other.get("field") if isinstance(other, dict) else other
        if data.get(other_name) != value:
            messages.append(_rule_message(other, f"{label} must match {other_name}"))

    return messages


def _is_unique(db: Session, schema: Dict[str, Any], name: str, value: Any, record_id: Any) -> bool:
    table = get_table(db, schema["table"])
    if name not in table.c:
        return True
    stmt = select(func.count()).select_from(table).where(table.c[name] == value)
    primary_key = schema.get("primary_key", "id")
    if record_id is not None and primary_key in table.c:
        stmt = stmt.where(table.c[primary_key] != record_id)
    return db.execute(stmt).scalar_one() == 0


def hash_password(value: str) -> str:
    return _password_hasher.hash(value)


def hash_passwords(schema: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
    """Hash submitted password values; empty ones are dropped to keep the stored hash."""
    for name, field in schema["fields"].items():
        if field.get("type") != "password" or name not in data:
            continue
        if _is_empty(data[name]):
            del data[name]
            continue
        data[name] = hash_password(str(data[name]))
    return data
