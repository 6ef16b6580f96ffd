"""
Relationship actions.

A schema's ``relationships`` entries may declare ``actions`` per lifecycle
event (``on_create``, ``on_update``, ``on_delete``). They keep pivot tables in
step with the record being written, for example attaching a default role on
create or syncing ``roles_ids`` on update. Actions run inside the caller's
transaction; nothing here commits except the explicit attach/detach helpers.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from crud6.db.tables import coerce_value, get_table
from crud6.exceptions import SchemaValidationException
from crud6.schema.service import get_schema_service

logger = logging.getLogger(__name__)

EVENTS = ("on_create", "on_update", "on_delete")


def find_relationship(schema: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    for relationship in schema.get("relationships") or []:
        if relationship.get("name") == name:
            return relationship
    return None


def _user_id(current_user: Any) -> Any:
    user_id = getattr(current_user, "id", current_user)
    if user_id is None or isinstance(user_id, int):
        return user_id
    return str(user_id)


def process_pivot_data(pivot_data: Dict[str, Any], current_user: Any = None) -> Dict[str, Any]:
    """Substitute ``now``, ``current_user`` and ``current_date`` placeholders."""
    processed = {}
    for key, value in (pivot_data or {}).items():
        if value == "now":
            processed[key] = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        elif value == "current_user":
            processed[key] = _user_id(current_user)
        elif value == "current_date":
            processed[key] = date.today().isoformat()
        else:
            processed[key] = value
    return processed


def _pivot_keys(schema: Dict[str, Any], relationship: Dict[str, Any]):
    name = relationship.get("name", "")
    pivot_table = relationship.get("pivot_table")
    if not pivot_table:
        raise SchemaValidationException(
            f"Relationship '{name}' of model '{schema['model']}' has no pivot_table"
        )
    foreign_key = relationship.get("foreign_key") or f"{schema['model']}_id"
    related_key = relationship.get("related_key") or f"{name.rstrip('s')}_id"
    return pivot_table, foreign_key, related_key


def _existing_related(db: Session, pivot, foreign_key: str, related_key: str, record_id: Any) -> set:
    rows = db.execute(select(pivot.c[related_key]).where(pivot.c[foreign_key] == record_id)).scalars()
    return {str(value) for value in rows}


def _insert_pivot_rows(
    db: Session,
    pivot,
    foreign_key: str,
    related_key: str,
    record_id: Any,
    items: Iterable[Dict[str, Any]],
) -> int:
    existing = _existing_related(db, pivot, foreign_key, related_key, record_id)
    now = datetime.now()
    inserted = 0
    for item in items:
        related_id = item["related_id"]
        if str(related_id) in existing:
            continue
        row = {foreign_key: record_id, related_key: related_id}
        row.update(
            {key: coerce_value(pivot, key, value) for key, value in item.get("pivot_data", {}).items() if key in pivot.c}
        )
        for column in ("created_at", "updated_at"):
            if column in pivot.c and column not in row:
                row[column] = now
        db.execute(pivot.insert().values(**row))
        existing.add(str(related_id))
        inserted += 1
    return inserted


def process_relationship_actions(
    db: Session,
    schema: Dict[str, Any],
    record_id: Any,
    data: Dict[str, Any],
    event: str,
    current_user: Any = None,
) -> None:
    """Run the ``event`` actions declared on every relationship of ``schema``."""
    if event not in EVENTS:
        raise ValueError(f"Unknown relationship event: {event}")
    for relationship in schema.get("relationships") or []:
        actions = (relationship.get("actions") or {}).get(event)
        if not actions:
            continue
        name = relationship.get("name")
        if not name:
            logger.warning("relationship_action_skipped: model=%s event=%s reason=missing name", schema["model"], event)
            continue
        try:
            pivot_table, foreign_key, related_key = _pivot_keys(schema, relationship)
            pivot = get_table(db, pivot_table)
            if "attach" in actions:
                _attach(db, pivot, foreign_key, related_key, record_id, actions["attach"], current_user, name)
            if event == "on_update" and "sync" in actions:
                _sync(db, pivot, foreign_key, related_key, record_id, actions["sync"], data, name)
            if "detach" in actions:
                _detach(db, pivot, foreign_key, related_key, record_id, actions["detach"], name)
        except Exception:
            logger.exception(
                "relationship_action_failed: model=%s relation=%s event=%s id=%s",
                schema["model"],
                name,
                event,
                record_id,
            )
            raise


def _attach(db, pivot, foreign_key, related_key, record_id, attach, current_user, name) -> None:
    items: List[Dict[str, Any]] = []
    for item in attach or []:
        if not isinstance(item, dict) or item.get("related_id") is None:
            logger.warning("relationship_attach_invalid: relation=%s item=%r", name, item)
            continue
        items.append(
            {
                "related_id": item["related_id"],
                "pivot_data": process_pivot_data(item.get("pivot_data") or {}, current_user),
            }
        )
    count = _insert_pivot_rows(db, pivot, foreign_key, related_key, record_id, items)
    logger.debug("relationship_attached: relation=%s id=%s count=%d", name, record_id, count)


def _sync(db, pivot, foreign_key, related_key, record_id, sync, data, name) -> None:
    key = sync if isinstance(sync, str) else f"{name}_ids"
    if key not in data:
        logger.debug("relationship_sync_skipped: relation=%s key=%s", name, key)
        return
    ids = [value for value in (data.get(key) or []) if value is not None and value != ""]
    # Kept rows retain their pivot data; only missing ids are inserted
    stale = delete(pivot).where(pivot.c[foreign_key] == record_id)
    if ids:
        stale = stale.where(pivot.c[related_key].notin_(ids))
    db.execute(stale)
    count = _insert_pivot_rows(
        db, pivot, foreign_key, related_key, record_id, [{"related_id": value} for value in ids]
    )
    logger.debug("relationship_synced: relation=%s id=%s count=%d", name, record_id, count)


def _detach(db, pivot, foreign_key, related_key, record_id, detach, name) -> None:
    stmt = delete(pivot).where(pivot.c[foreign_key] == record_id)
    if detach == "all":
        db.execute(stmt)
    elif isinstance(detach, list):
        if detach:
            db.execute(stmt.where(pivot.c[related_key].in_(detach)))
    else:
        logger.warning("relationship_detach_invalid: relation=%s value=%r", name, detach)
        return
    logger.debug("relationship_detached: relation=%s id=%s", name, record_id)


def _many_to_many(schema: Dict[str, Any], relation: str) -> Dict[str, Any]:
    relationship = find_relationship(schema, relation)
    if relationship is None or relationship.get("type") != "many_to_many":
        raise SchemaValidationException(
            f"Relationship '{relation}' of model '{schema['model']}' is not a many_to_many relationship"
        )
    return relationship


def attach_related(db: Session, schema: Dict[str, Any], record_id: Any, relation: str, ids: List[Any]) -> int:
    relationship = _many_to_many(schema, relation)
    pivot_table, foreign_key, related_key = _pivot_keys(schema, relationship)
    pivot = get_table(db, pivot_table)
    try:
        count = _insert_pivot_rows(
            db, pivot, foreign_key, related_key, record_id, [{"related_id": value} for value in ids]
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("relationship_attach_failed: model=%s relation=%s id=%s", schema["model"], relation, record_id)
        raise
    return count


def detach_related(db: Session, schema: Dict[str, Any], record_id: Any, relation: str, ids: List[Any]) -> int:
    relationship = _many_to_many(schema, relation)
    pivot_table, foreign_key, related_key = _pivot_keys(schema, relationship)
    pivot = get_table(db, pivot_table)
    try:
        result = db.execute(
            delete(pivot).where(pivot.c[foreign_key] == record_id).where(pivot.c[related_key].in_(ids))
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("relationship_detach_failed: model=%s relation=%s id=%s", schema["model"], relation, record_id)
        raise
    return result.rowcount


def detail_configs(schema: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Return ``details`` entries, or the single ``detail`` wrapped in a list."""
    details = schema.get("details")
    if isinstance(details, list):
        return [detail for detail in details if isinstance(detail, dict)]
    if isinstance(schema.get("detail"), dict):
        return [schema["detail"]]
    return []


def cascade_delete_children(
    db: Session,
    schema: Dict[str, Any],
    record_id: Any,
    soft_deleting: bool,
    current_user: Any = None,
) -> None:
    """Delete child rows of ``detail``/``details`` entries before their parent goes."""
    for detail in detail_configs(schema):
        if not detail.get("foreign_key") or not detail.get("model"):
            continue
        if detail.get("cascade_delete") is False:
            continue

        child_schema = get_schema_service().get_schema(detail["model"], schema.get("connection"))
        child_table = get_table(db, child_schema["table"])
        foreign_key = detail["foreign_key"]
        if foreign_key not in child_table.c:
            logger.warning(
                "cascade_delete_skipped: model=%s child=%s reason=missing column %s",
                schema["model"],
                detail["model"],
                foreign_key,
            )
            continue

        mode = detail.get("cascade_delete_mode", child_schema.get("cascade_delete_mode"))
        soft = (
            soft_deleting
            and child_schema.get("soft_delete")
            and mode != "hard"
            and "deleted_at" in child_table.c
        )
        if soft:
            db.execute(
                update(child_table)
                .where(child_table.c[foreign_key] == record_id)
                .where(child_table.c.deleted_at.is_(None))
                .values(deleted_at=datetime.now())
            )
            logger.debug("cascade_soft_deleted: parent=%s child=%s id=%s", schema["model"], detail["model"], record_id)
            continue

        child_pk = child_schema.get("primary_key", "id")
        if child_pk in child_table.c:
            child_ids = db.execute(
                select(child_table.c[child_pk]).where(child_table.c[foreign_key] == record_id)
            ).scalars().all()
            for child_id in child_ids:
                process_relationship_actions(db, child_schema, child_id, {}, "on_delete", current_user)
        db.execute(delete(child_table).where(child_table.c[foreign_key] == record_id))
        logger.debug("cascade_hard_deleted: parent=%s child=%s id=%s", schema["model"], detail["model"], record_id)
