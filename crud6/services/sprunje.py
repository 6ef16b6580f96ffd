"""
Sprunje: paginated, sorted and filtered listings driven by schema flags.

Query string options follow the admin panel's conventions::

    ?size=10&page=0&sorts[name]=asc&filters[name]=foo||bar&filters[_all]=x&lists[]=status

``page`` is zero-based. ``size`` may be ``all``. Sorting and filtering are only
allowed on fields the schema marks as ``sortable`` / ``filterable``.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import String, and_, cast, func, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from crud6.db.repositories.records import serialize_record
from crud6.db.tables import get_table
from crud6.exceptions import ValidationException
from crud6.services.fields import is_boolean_type, is_virtual, transform

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
SEARCH_KEY = "_all"
_BRACKETED = re.compile(r"^(sorts|filters|lists)\[([^\]]*)\]$")


@dataclass
class SprunjeOptions:
    size: Optional[int] = None
    page: Optional[int] = None
    sorts: Dict[str, str] = field(default_factory=dict)
    filters: Dict[str, str] = field(default_factory=dict)
    lists: List[str] = field(default_factory=list)


def _parse_int(name: str, value: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationException({name: [f"{name} must be an integer"]}) from None
    if number < 0:
        raise ValidationException({name: [f"{name} must not be negative"]})
    return number


def parse_options(params: Union[Mapping[str, Any], Sequence[tuple]]) -> SprunjeOptions:
    """Build options from query parameters (a mapping or a list of pairs)."""
    items = params.multi_items() if hasattr(params, "multi_items") else (
        params.items() if isinstance(params, Mapping) else params
    )
    options = SprunjeOptions()
    raw_size = None
    raw_page = None
    for key, value in items:
        if key == "size":
            raw_size = value
        elif key == "page":
            raw_page = value
        elif key == "search":
            if value:
                options.filters[SEARCH_KEY] = value
        else:
            match = _BRACKETED.match(key)
            if not match:
                continue
            group, name = match.groups()
            if group == "sorts" and name:
                options.sorts[name] = str(value).lower()
            elif group == "filters" and name:
                options.filters[name] = value
            elif group == "lists":
                options.lists.append(value if not name or name.isdigit() else name)

    if raw_page not in (None, ""):
        options.page = _parse_int("page", raw_page)
    if raw_size not in (None, "", "all"):
        options.size = _parse_int("size", raw_size)
    elif raw_size in (None, "") and options.page is not None:
        options.size = DEFAULT_PAGE_SIZE
    if options.size is not None and options.page is None:
        options.page = 0
    return options


def sortable_fields(schema: Dict[str, Any]) -> List[str]:
    return [name for name, f in schema["fields"].items() if f.get("sortable")]


def filterable_fields(schema: Dict[str, Any]) -> List[str]:
    return [name for name, f in schema["fields"].items() if f.get("filterable")]


def listable_fields(schema: Dict[str, Any]) -> List[str]:
    names = []
    for name, f in schema["fields"].items():
        if f.get("type") == "password" or is_virtual(f):
            continue
        listable = f["listable"] if "listable" in f else not f.get("readonly", False)
        if listable:
            names.append(name)
    return names


class Sprunje:
    """Runs one listing request against a schema's table."""

    def __init__(
        self,
        db: Session,
        schema: Dict[str, Any],
        options: Optional[SprunjeOptions] = None,
        list_fields: Optional[List[str]] = None,
    ):
        self.db = db
        self.schema = schema
        self.options = options or SprunjeOptions()
        self.table = get_table(db, schema["table"])
        self.list_fields = list_fields
        self._extensions: List[Callable[[Any], ColumnElement]] = []

    def extend_query(self, clause: Callable[[Any], ColumnElement]) -> "Sprunje":
        """Add a where-clause built from the table, e.g. a detail foreign key."""
        self._extensions.append(clause)
        return self

    def _column(self, name: str):
        if name not in self.table.c:
            raise ValidationException({name: [f"'{name}' is not a column of {self.schema['table']}"]})
        return self.table.c[name]

    def _base_conditions(self) -> List[ColumnElement]:
        conditions = [extension(self.table) for extension in self._extensions]
        if self.schema.get("soft_delete") and "deleted_at" in self.table.c:
            conditions.append(self.table.c.deleted_at.is_(None))
        return conditions

    def _like(self, name: str, value: str) -> ColumnElement:
        column = self.table.c[name]
        field_type = self.schema["fields"].get(name, {}).get("type")
        if is_boolean_type(field_type):
            return column == transform("boolean", value)
        return cast(column, String).like(f"%{value}%")

    def _filter_conditions(self) -> List[ColumnElement]:
        conditions: List[ColumnElement] = []
        filterable = filterable_fields(self.schema)
        for name, value in self.options.filters.items():
            if value in (None, ""):
                continue
            if name == SEARCH_KEY:
                columns = [f for f in filterable if f in self.table.c]
                if columns:
                    conditions.append(or_(*[
                        cast(self.table.c[f], String).like(f"%{value}%") for f in columns
                    ]))
                continue
            if name not in filterable:
                raise ValidationException({"filters": [f"Filtering by '{name}' is not allowed"]})
            self._column(name)
            values = [part for part in str(value).split("||") if part != ""]
            if values:
                conditions.append(or_(*[self._like(name, part) for part in values]))
        return conditions

    def _order_by(self) -> List[ColumnElement]:
        sorts = self.options.sorts or dict(self.schema.get("default_sort") or {})
        sortable = sortable_fields(self.schema)
        requested = bool(self.options.sorts)
        order = []
        for name, direction in sorts.items():
            direction = str(direction).lower()
            if direction not in ("asc", "desc"):
                raise ValidationException({"sorts": [f"Invalid sort direction '{direction}' for '{name}'"]})
            if requested and name not in sortable:
                raise ValidationException({"sorts": [f"Sorting by '{name}' is not allowed"]})
            if name not in self.table.c:
                continue
            column = self.table.c[name]
            order.append(column.asc() if direction == "asc" else column.desc())
        return order

    def _count(self, conditions: List[ColumnElement]) -> int:
        stmt = select(func.count()).select_from(self.table)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        return self.db.execute(stmt).scalar_one()

    def _listable_values(self, conditions: List[ColumnElement]) -> Dict[str, List[Any]]:
        listable: Dict[str, List[Any]] = {}
        for name in self.options.lists:
            column = self._column(name)
            stmt = select(column).distinct().where(column.isnot(None)).order_by(column)
            if conditions:
                stmt = stmt.where(and_(*conditions))
            listable[name] = list(self.db.execute(stmt).scalars())
        return listable

    def _transform(self, row: Any) -> Dict[str, Any]:
        data = serialize_record(self.schema, row)
        keys = self.list_fields or listable_fields(self.schema)
        primary_key = self.schema.get("primary_key", "id")
        return {key: value for key, value in data.items() if key in keys or key == primary_key}

    def get_results(self) -> Dict[str, Any]:
        base = self._base_conditions()
        filtered = base + self._filter_conditions()
        order = self._order_by()

        stmt = select(self.table)
        if filtered:
            stmt = stmt.where(and_(*filtered))
        if order:
            stmt = stmt.order_by(*order)
        if self.options.size is not None:
            stmt = stmt.limit(self.options.size).offset((self.options.page or 0) * self.options.size)

        rows = [self._transform(row) for row in self.db.execute(stmt)]
        results = {
            "count": self._count(base),
            "count_filtered": self._count(filtered),
            "rows": rows,
            "listable": self._listable_values(base),
        }
        logger.debug(
            "sprunje_results: model=%s count=%d filtered=%d returned=%d",
            self.schema["model"],
            results["count"],
            results["count_filtered"],
            len(rows),
        )
        return results
