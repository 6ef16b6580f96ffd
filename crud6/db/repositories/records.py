"""
Record repository functions over reflected tables.

Writes run the schema's relationship actions in the same transaction and
commit once; any failure rolls the whole unit back.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import Table, delete, select, update
from sqlalchemy.orm import Session

from crud6.db.tables import coerce_id, coerce_value, get_table
from crud6.exceptions import RecordNotFoundException, ValidationException
from crud6.services import relationships
from crud6.services.fields import is_virtual, transform

logger = logging.getLogger(__name__)


def _not_found(schema: Dict[str, Any], record_id: Any) -> RecordNotFoundException:
    return RecordNotFoundException(f"No record found with ID '{record_id}' in table '{schema['table']}'.")


def _soft_delete_active(schema: Dict[str, Any], table: Table) -> bool:
    return bool(schema.get("soft_delete")) and "deleted_at" in table.c


def _cast(table: Table, name: str, field: Dict[str, Any], value: Any) -> Any:
    try:
        return coerce_value(table, name, transform(field.get("type"), value))
    except (TypeError, ValueError):
        label = field.get("label") or name
        raise ValidationException({name: [f"{label} has an invalid value"]}) from None


def primary_key_column(schema: Dict[str, Any], table: Table):
    return table.c[schema.get("primary_key", "id")]


def serialize_record(schema: Dict[str, Any], row: Any) -> Dict[str, Any]:
    data = dict(row._mapping) if hasattr(row, "_mapping") else dict(row)
    for name, field in schema["fields"].items():
        if field.get("type") == "password":
            data.pop(name, None)
    return data


def find_record(db: Session, schema: Dict[str, Any], record_id: Any) -> Dict[str, Any]:
    table = get_table(db, schema["table"])
    key = coerce_id(table, schema.get("primary_key", "id"), record_id)
    stmt = select(table).where(primary_key_column(schema, table) == key)
    if _soft_delete_active(schema, table):
        stmt = stmt.where(table.c.deleted_at.is_(None))
    row = db.execute(stmt).first()
    if row is None:
        raise _not_found(schema, record_id)
    return serialize_record(schema, row)


def prepare_insert_data(schema: Dict[str, Any], data: Dict[str, Any], table: Table) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, field in schema["fields"].items():
        if field.get("auto_increment") or is_virtual(field):
            continue
        if name in data:
            value = data[name]
        elif "default" in field:
            value = field["default"]
        else:
            continue
        if name in table.c:
            values[name] = _cast(table, name, field, value)

    if schema.get("timestamps"):
        now = datetime.now()
        for column in ("created_at", "updated_at"):
            if column in table.c:
                values.setdefault(column, now)
    return values


def prepare_update_data(schema: Dict[str, Any], data: Dict[str, Any], table: Table) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, value in data.items():
        field = schema["fields"].get(name)
        if field is None or name not in table.c:
            continue
        if field.get("readonly") or field.get("auto_increment") or is_virtual(field):
            continue
        values[name] = _cast(table, name, field, value)

    if schema.get("timestamps") and "updated_at" in table.c:
        values["updated_at"] = datetime.now()
    return values


def insert_record(db: Session, schema: Dict[str, Any], data: Dict[str, Any], current_user: Any = None) -> Any:
    """Insert a record, run its ``on_create`` relationship actions and commit."""
    table = get_table(db, schema["table"])
    values = prepare_insert_data(schema, data, table)
    try:
        result = db.execute(table.insert().values(**values))
        record_id = result.inserted_primary_key[0]
        relationships.process_relationship_actions(db, schema, record_id, data, "on_create", current_user)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("record_insert_failed: model=%s", schema["model"])
        raise
    logger.debug("record_inserted: model=%s id=%s", schema["model"], record_id)
    return record_id


def update_record(
    db: Session,
    schema: Dict[str, Any],
    record_id: Any,
    data: Dict[str, Any],
    current_user: Any = None,
) -> Dict[str, Any]:
    """Apply a partial update, run ``on_update`` relationship actions and commit."""
    table = get_table(db, schema["table"])
    find_record(db, schema, record_id)
    key = coerce_id(table, schema.get("primary_key", "id"), record_id)
    values = prepare_update_data(schema, data, table)
    try:
        if values:
            db.execute(update(table).where(primary_key_column(schema, table) == key).values(**values))
        relationships.process_relationship_actions(db, schema, key, data, "on_update", current_user)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("record_update_failed: model=%s id=%s", schema["model"], record_id)
        raise
    return find_record(db, schema, record_id)


def update_field(
    db: Session,
    schema: Dict[str, Any],
    record_id: Any,
    field_name: str,
    value: Any,
) -> Dict[str, Any]:
    table = get_table(db, schema["table"])
    find_record(db, schema, record_id)
    key = coerce_id(table, schema.get("primary_key", "id"), record_id)
    field = schema["fields"][field_name]
    values = {field_name: _cast(table, field_name, field, value)}
    if schema.get("timestamps") and "updated_at" in table.c:
        values["updated_at"] = datetime.now()
    try:
        db.execute(update(table).where(primary_key_column(schema, table) == key).values(**values))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("record_field_update_failed: model=%s id=%s field=%s", schema["model"], record_id, field_name)
        raise
    return find_record(db, schema, record_id)


def delete_record(db: Session, schema: Dict[str, Any], record_id: Any, current_user: Any = None) -> bool:
    """Delete a record and its detail children in one transaction.

    Returns True when the record was soft-deleted.
    """
    table = get_table(db, schema["table"])
    find_record(db, schema, record_id)
    key = coerce_id(table, schema.get("primary_key", "id"), record_id)
    soft = _soft_delete_active(schema, table)
    try:
        relationships.process_relationship_actions(db, schema, key, {}, "on_delete", current_user)
        relationships.cascade_delete_children(db, schema, key, soft, current_user)
        where = primary_key_column(schema, table) == key
        if soft:
            db.execute(update(table).where(where).values(deleted_at=datetime.now()))
        else:
            db.execute(delete(table).where(where))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("record_delete_failed: model=%s id=%s", schema["model"], record_id)
        raise
    logger.debug("record_deleted: model=%s id=%s soft=%s", schema["model"], record_id, soft)
    return soft
