"""
Runtime table reflection.

Schema-described tables belong to the application database, not to this
service, so they are reflected on first use instead of being declared as
models. Reflected tables are cached per database and table name.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Tuple

from sqlalchemy import MetaData, Table
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.orm import Session

from crud6.exceptions import RecordNotFoundException, SchemaValidationException

logger = logging.getLogger(__name__)

_reflected: Dict[Tuple[str, str], Table] = {}


def _bind_key(db: Session) -> str:
    bind = db.get_bind()
    return str(bind.engine.url)


def get_table(db: Session, table_name: str) -> Table:
    key = (_bind_key(db), table_name)
    table = _reflected.get(key)
    if table is not None:
        return table
    try:
        # Reflect on the session's own connection so an open write transaction is not disturbed
        table = Table(table_name, MetaData(), autoload_with=db.connection())
    except NoSuchTableError as exc:
        raise SchemaValidationException(f"Table '{table_name}' does not exist") from exc
    logger.debug("table_reflected: table=%s columns=%s", table_name, list(table.c.keys()))
    _reflected[key] = table
    return table


def clear_table_cache() -> None:
    _reflected.clear()


def coerce_id(table: Table, primary_key: str, value: Any) -> Any:
    """Convert a path id to the primary key column's python type."""
    if primary_key not in table.c:
        raise SchemaValidationException(f"Primary key '{primary_key}' is not a column of '{table.name}'")
    try:
        python_type = table.c[primary_key].type.python_type
    except NotImplementedError:
        return value
    if python_type is int and not isinstance(value, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise RecordNotFoundException(
                f"No record found with ID '{value}' in table '{table.name}'."
            ) from None
    if python_type is str:
        return str(value)
    return value


def coerce_value(table: Table, name: str, value: Any) -> Any:
    """Parse ISO strings for date/datetime columns; drivers such as sqlite reject strings."""
    if not isinstance(value, str) or name not in table.c:
        return value
    try:
        python_type = table.c[name].type.python_type
    except NotImplementedError:
        return value
    if python_type in (date, datetime) and not value.strip():
        return None
    if python_type is datetime:
        return datetime.fromisoformat(value)
    if python_type is date:
        return date.fromisoformat(value[:10])
    return value
