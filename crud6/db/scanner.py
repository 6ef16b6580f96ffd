"""
Database introspection for schema generation.

Reads tables, columns, indexes and foreign keys through the SQLAlchemy
inspector and detects relationships between tables. Explicit relationships
come from foreign keys. Implicit ones are guessed from column names such as
``category_id`` and confirmed by sampling the data.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence, Union

from sqlalchemy import column, distinct, func, inspect, select, table, types
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

DEFAULT_NAMING_PATTERNS = (r"^(.+)_id$", r"^(.+)Id$")
DEFAULT_TABLE_PREFIXES = ("tbl_", "test_")
INTEGER_TYPES = ("integer", "smallint", "bigint")

SINGULAR_SPECIAL_CASES = ("data", "info", "series", "species", "status", "syllabus", "campus", "genus")
_SES_EXCEPTIONS = ("analyses", "bases", "cases")

# Most specific types first: BigInteger and SmallInteger subclass Integer, Float subclasses Numeric
_TYPE_MAP = (
    (types.BigInteger, "bigint"),
    (types.SmallInteger, "smallint"),
    (types.Integer, "integer"),
    (types.Float, "float"),
    (types.Numeric, "decimal"),
    (types.Boolean, "boolean"),
    (types.DateTime, "datetime"),
    (types.Date, "date"),
    (types.Time, "time"),
    (types.JSON, "json"),
    (types.LargeBinary, "blob"),
    (types.Text, "text"),
    (types.Enum, "string"),
    (types.String, "string"),
)


def normalize_type(column_type: Any) -> str:
    for type_class, name in _TYPE_MAP:
        if isinstance(column_type, type_class):
            return name
    visit = getattr(column_type, "__visit_name__", "") or ""
    if "blob" in visit.lower() or "binary" in visit.lower():
        return "blob"
    return "string"


def singular_forms(name: str) -> List[str]:
    """Return candidate singular forms of a table name."""
    if name in SINGULAR_SPECIAL_CASES:
        return [name]
    forms: List[str] = []
    if name.endswith("ies"):
        forms.append(name[:-3] + "y")
    elif re.search(r"(ss|sh|ch|x)es$", name):
        forms.append(name[:-2])
    elif name.endswith("ves"):
        forms.extend([name[:-3] + "f", name[:-3] + "fe"])
    elif name.endswith("oes"):
        forms.append(name[:-2])
    elif name.endswith("ses") and name not in _SES_EXCEPTIONS:
        forms.extend([name[:-2], name[:-1]])
    elif name.endswith("us"):
        forms.append(name)
    elif name.endswith("s"):
        forms.append(name[:-1])
    return forms or [name]


def camel_case(name: str) -> str:
    joined = "".join(part[:1].upper() + part[1:] for part in name.split("_"))
    return joined[:1].lower() + joined[1:]


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


class DatabaseScanner:
    def __init__(self, engine: Engine, connection_name: Optional[str] = None):
        self.engine = engine
        self.connection_name = connection_name
        self.naming_patterns: List[Pattern] = [re.compile(p, re.IGNORECASE) for p in DEFAULT_NAMING_PATTERNS]
        self.table_prefixes: List[str] = list(DEFAULT_TABLE_PREFIXES)
        self.confidence_threshold = 0.8

    def set_naming_patterns(self, patterns: Sequence[Union[str, Pattern]]) -> "DatabaseScanner":
        self.naming_patterns = [p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE) for p in patterns]
        return self

    def set_table_prefixes(self, prefixes: Sequence[str]) -> "DatabaseScanner":
        self.table_prefixes = list(prefixes)
        return self

    def set_confidence_threshold(self, threshold: float) -> "DatabaseScanner":
        self.confidence_threshold = max(0.0, min(1.0, float(threshold)))
        return self

    def get_tables(self) -> List[str]:
        return inspect(self.engine).get_table_names()

    def get_table_info(self, table_name: str) -> Dict[str, Any]:
        inspector = inspect(self.engine)
        pk = inspector.get_pk_constraint(table_name) or {}
        primary_key = list(pk.get("constrained_columns") or [])

        columns: Dict[str, Dict[str, Any]] = {}
        for col in inspector.get_columns(table_name):
            normalized = normalize_type(col["type"])
            if "autoincrement" in col and col["autoincrement"] is not None and col["autoincrement"] != "auto":
                autoincrement = bool(col["autoincrement"])
            else:
                # sqlite does not report it; a lone integer primary key is a rowid alias
                autoincrement = primary_key == [col["name"]] and normalized in INTEGER_TYPES
            columns[col["name"]] = {
                "name": col["name"],
                "type": normalized,
                "length": getattr(col["type"], "length", None),
                "nullable": bool(col.get("nullable", True)),
                "default": col.get("default"),
                "autoincrement": autoincrement,
                "unsigned": bool(getattr(col["type"], "unsigned", False)),
                "comment": col.get("comment"),
            }

        indexes: Dict[str, Dict[str, Any]] = {}
        if primary_key:
            name = pk.get("name") or "primary"
            indexes[name] = {"name": name, "columns": primary_key, "unique": True, "primary": True}
        for index in inspector.get_indexes(table_name):
            name = index.get("name") or f"ix_{table_name}_{'_'.join(index['column_names'])}"
            indexes[name] = {
                "name": name,
                "columns": list(index["column_names"]),
                "unique": bool(index.get("unique")),
                "primary": False,
            }
        for constraint in inspector.get_unique_constraints(table_name):
            name = constraint.get("name") or f"uq_{table_name}_{'_'.join(constraint['column_names'])}"
            indexes.setdefault(
                name,
                {"name": name, "columns": list(constraint["column_names"]), "unique": True, "primary": False},
            )

        foreign_keys: Dict[str, Dict[str, Any]] = {}
        for fk in inspector.get_foreign_keys(table_name):
            name = fk.get("name") or f"fk_{table_name}_{'_'.join(fk['constrained_columns'])}"
            options = fk.get("options") or {}
            foreign_keys[name] = {
                "name": name,
                "localColumns": list(fk["constrained_columns"]),
                "foreignTable": fk["referred_table"],
                "foreignColumns": list(fk["referred_columns"]),
                "onUpdate": options.get("onupdate"),
                "onDelete": options.get("ondelete"),
            }

        return {
            "name": table_name,
            "columns": columns,
            "indexes": indexes,
            "foreignKeys": foreign_keys,
            "primaryKey": primary_key,
        }

    def scan_database(self, table_filter: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, Any]]:
        tables = self.get_tables()
        if table_filter:
            tables = [name for name in tables if name in table_filter]
        logger.info("database_scan: connection=%s tables=%d", self.connection_name or "default", len(tables))
        return {name: self.get_table_info(name) for name in tables}

    def detect_relationships(
        self,
        tables: Dict[str, Dict[str, Any]],
        include_implicit: bool = False,
        sample_size: int = 100,
    ) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        relationships = {name: {"references": []} for name in tables}
        for name, metadata in tables.items():
            for fk in metadata["foreignKeys"].values():
                relationships[name]["references"].append(
                    {
                        "table": fk["foreignTable"],
                        "localKey": fk["localColumns"][0] if fk["localColumns"] else None,
                        "foreignKey": fk["foreignColumns"][0] if fk["foreignColumns"] else None,
                        "type": "explicit",
                    }
                )
        if include_implicit:
            implicit = self.detect_implicit_relationships(tables, sample_size)
            for name, found in implicit.items():
                relationships[name]["references"].extend(found["references"])
        return relationships

    def detect_implicit_relationships(
        self, tables: Dict[str, Dict[str, Any]], sample_size: int = 100
    ) -> Dict[str, Dict[str, List[Dict[str, Any]]]]:
        relationships = {name: {"references": []} for name in tables}
        lookup = self.build_table_lookup(tables)

        for name, metadata in tables.items():
            for column_name, col in metadata["columns"].items():
                if column_name in (metadata.get("primaryKey") or []):
                    continue
                if self._has_explicit_foreign_key(metadata, column_name):
                    continue
                candidate = self._identify_potential_foreign_key(column_name, col, lookup)
                if candidate is None:
                    continue

                valid, confidence = True, 1.0
                if sample_size > 0:
                    valid, confidence = self.validate_with_sampling(
                        name, column_name, candidate["table"], candidate["foreignKey"], sample_size
                    )
                if valid:
                    relationships[name]["references"].append(
                        {
                            "table": candidate["table"],
                            "localKey": column_name,
                            "foreignKey": candidate["foreignKey"],
                            "type": "implicit",
                            "confidence": confidence,
                        }
                    )
                else:
                    logger.debug(
                        "implicit_relationship_rejected: table=%s column=%s target=%s confidence=%.2f",
                        name,
                        column_name,
                        candidate["table"],
                        confidence,
                    )
        return relationships

    def build_table_lookup(self, tables: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        prefixes = self.detect_table_prefixes(list(tables))
        lookup = {}
        for name, metadata in tables.items():
            primary_key = (metadata.get("primaryKey") or ["id"])[0]
            lookup[name] = {
                "table": name,
                "primaryKey": primary_key,
                "variations": self.table_name_variations(name, prefixes),
            }
        return lookup

    def detect_table_prefixes(self, table_names: Sequence[str]) -> List[str]:
        counts: Dict[str, int] = {}
        for name in table_names:
            parts = name.split("_")
            prefix = ""
            for i in range(min(3, len(parts) - 1)):
                prefix += parts[i] + "_"
                if len(prefix) >= 3:
                    counts[prefix] = counts.get(prefix, 0) + 1
        detected = [prefix for prefix, count in counts.items() if count >= 2]
        return sorted(_unique(detected + self.table_prefixes), key=len, reverse=True)

    def table_name_variations(self, table_name: str, prefixes: Optional[Sequence[str]] = None) -> List[str]:
        prefixes = list(prefixes) if prefixes else self.table_prefixes
        clean = table_name
        for prefix in prefixes:
            if table_name.startswith(prefix):
                clean = table_name[len(prefix):]
                break

        variations = [table_name]
        if clean != table_name:
            variations.append(clean)
        for singular in singular_forms(clean):
            variations.append(singular)
            for prefix in prefixes:
                if table_name.startswith(prefix):
                    variations.append(prefix + singular)

        base = _unique(variations)
        return _unique(base + [camel_case(value) for value in base])

    @staticmethod
    def _has_explicit_foreign_key(metadata: Dict[str, Any], column_name: str) -> bool:
        return any(column_name in fk["localColumns"] for fk in metadata["foreignKeys"].values())

    def _identify_potential_foreign_key(
        self, column_name: str, col: Dict[str, Any], lookup: Dict[str, Dict[str, Any]]
    ) -> Optional[Dict[str, str]]:
        if col["type"] not in INTEGER_TYPES:
            return None
        for pattern in self.naming_patterns:
            match = pattern.match(column_name)
            if not match:
                continue
            target = match.group(1)
            for entry in lookup.values():
                if target in entry["variations"]:
                    return {"table": entry["table"], "foreignKey": entry["primaryKey"]}
        return None

    def validate_with_sampling(
        self,
        table_name: str,
        column_name: str,
        foreign_table: str,
        foreign_key: str,
        sample_size: int,
    ):
        """Return ``(valid, confidence)`` for a candidate relationship."""
        local = column(column_name)
        remote = column(foreign_key)
        try:
            with self.engine.connect() as conn:
                values = list(
                    conn.execute(
                        select(local)
                        .distinct()
                        .select_from(table(table_name))
                        .where(local.isnot(None))
                        .limit(sample_size)
                    ).scalars()
                )
                if not values:
                    return True, 0.5
                matches = conn.execute(
                    select(func.count(distinct(remote)))
                    .select_from(table(foreign_table))
                    .where(remote.in_(values))
                ).scalar_one()
        except Exception:
            logger.warning(
                "relationship_sampling_failed: table=%s column=%s target=%s",
                table_name,
                column_name,
                foreign_table,
                exc_info=True,
            )
            return False, 0.0
        confidence = matches / len(values)
        return confidence >= self.confidence_threshold, confidence
