"""
Schema generation from scanned table metadata.

Turns the output of `crud6.db.scanner.DatabaseScanner` into schema JSON
files, one per table, with permissions, default sort, field flags and
validation rules inferred from column types and names.
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from crud6.config import CRUD_OPERATIONS

logger = logging.getLogger(__name__)

_PREFIX = re.compile(r"^(tbl_|test_)")
TIMESTAMP_COLUMNS = ("created_at", "updated_at", "deleted_at")
NAME_COLUMNS = ("name", "title", "slug", "user_name", "username")
DEFAULT_LIST_FIELDS = ["id", "name", "title", "email", "status"]
UNLISTED_COLUMNS = ("created_at", "updated_at", "password", "token", "secret")
MAX_LIST_FIELDS = 5

TYPE_MAP = {
    "integer": "integer",
    "smallint": "integer",
    "bigint": "integer",
    "decimal": "decimal",
    "float": "float",
    "string": "string",
    "text": "text",
    "boolean": "boolean",
    "date": "date",
    "datetime": "datetime",
    "time": "time",
    "json": "json",
    "blob": "blob",
}


def title_case(value: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in value.replace("_", " ").split(" "))


def strip_prefix(table_name: str) -> str:
    return _PREFIX.sub("", table_name)


class SchemaGenerator:
    def __init__(self, schema_directory: str, crud_options: Optional[Dict[str, bool]] = None):
        self.schema_directory = Path(schema_directory)
        self.crud_options = {op: True for op in CRUD_OPERATIONS}
        self.crud_options.update(crud_options or {})

    def generate_schema(
        self,
        table_metadata: Dict[str, Any],
        relationships: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None,
    ) -> Dict[str, Any]:
        table_name = table_metadata["name"]
        columns = table_metadata["columns"]
        primary_key = (table_metadata.get("primaryKey") or ["id"])[0]

        schema: Dict[str, Any] = {
            "model": table_name,
            "title": self.generate_title(table_name),
            "singular_title": self.generate_singular_title(table_name),
            "description": f"Manage {table_name}",
            "table": table_name,
            "permissions": self.generate_permissions(table_name),
            "default_sort": self.generate_default_sort(columns, primary_key),
        }
        if primary_key != "id":
            schema["primary_key"] = primary_key

        detail = self.detail_relationship(table_name, relationships or {})
        if detail is not None:
            schema["detail"] = detail

        schema["fields"] = {
            name: self.generate_field(column, primary_key) for name, column in columns.items()
        }
        return schema

    def generate_schemas(
        self,
        tables: Dict[str, Dict[str, Any]],
        relationships: Optional[Dict[str, Dict[str, List[Dict[str, Any]]]]] = None,
    ) -> List[str]:
        schemas = {name: self.generate_schema(metadata, relationships) for name, metadata in tables.items()}

        # list_fields can only be filled once every child schema exists
        for schema in schemas.values():
            detail = schema.get("detail")
            if detail and detail.get("model") in schemas:
                detail["list_fields"] = self.extract_listable_fields(schemas[detail["model"]])

        return [str(self.save_schema(name, schema)) for name, schema in schemas.items()]

    def save_schema(self, table_name: str, schema: Dict[str, Any]) -> Path:
        self.schema_directory.mkdir(parents=True, exist_ok=True)
        path = self.schema_directory / f"{table_name}.json"
        path.write_text(json.dumps(schema, indent=4) + "\n", encoding="utf-8")
        logger.info("schema_written: table=%s path=%s", table_name, path)
        return path

    def generate_title(self, table_name: str) -> str:
        return f"{title_case(strip_prefix(table_name))} Management"

    def generate_singular_title(self, table_name: str) -> str:
        title = title_case(strip_prefix(table_name))
        if title.endswith("ies"):
            return title[:-3] + "y"
        if title.endswith("es"):
            return title[:-2]
        if title.endswith("s"):
            return title[:-1]
        return title

    def generate_permissions(self, table_name: str) -> Dict[str, str]:
        name = strip_prefix(table_name)
        singular = name.rstrip("s")
        permissions = {
            "read": f"uri_{name}",
            "create": f"create_{singular}",
            "update": f"update_{singular}",
            "delete": f"delete_{singular}",
        }
        return {op: slug for op, slug in permissions.items() if self.crud_options.get(op, True)}

    @staticmethod
    def generate_default_sort(columns: Dict[str, Any], primary_key: str) -> Dict[str, str]:
        for name in NAME_COLUMNS:
            if name in columns:
                return {name: "asc"}
        return {primary_key: "asc"}

    @staticmethod
    def detail_relationship(table_name: str, relationships: Dict[str, Dict[str, List[Dict[str, Any]]]]):
        """Return a ``detail`` block for the first table that references ``table_name``."""
        for other, found in relationships.items():
            for reference in found.get("references") or []:
                if reference.get("table") == table_name:
                    return {
                        "model": other,
                        "foreign_key": reference.get("localKey"),
                        "list_fields": list(DEFAULT_LIST_FIELDS),
                        "title": f"{table_name.upper()}.{other.upper()}",
                    }
        return None

    @staticmethod
    def extract_listable_fields(schema: Dict[str, Any], max_fields: int = MAX_LIST_FIELDS) -> List[str]:
        listable = [name for name, f in (schema.get("fields") or {}).items() if f.get("listable") is True]
        if len(listable) > max_fields:
            if "id" in listable:
                others = [name for name in listable if name != "id"]
                return ["id"] + others[: max_fields - 1]
            return listable[:max_fields]
        return listable

    def generate_field(self, column: Dict[str, Any], primary_key: str) -> Dict[str, Any]:
        field_type = TYPE_MAP.get(column["type"], "string")
        name = column["name"]
        autoincrement = bool(column.get("autoincrement"))
        timestamp = name in TIMESTAMP_COLUMNS

        field: Dict[str, Any] = {"type": field_type, "label": title_case(name)}
        if autoincrement:
            field["auto_increment"] = True
        if autoincrement or name == primary_key or timestamp:
            field["readonly"] = True
        if not column.get("nullable", True) and not timestamp and not autoincrement:
            field["required"] = True

        field["sortable"] = self.is_sortable(field_type)
        field["filterable"] = self.is_filterable(column, field_type)
        field["searchable"] = self.is_searchable(column, field_type)
        field["listable"] = self.is_listable(column, field_type)

        validation = self.generate_validation(column)
        if validation:
            field["validation"] = validation
        return field

    @staticmethod
    def is_sortable(field_type: str) -> bool:
        if field_type in ("string", "integer", "date", "datetime", "decimal", "float"):
            return True
        return field_type not in ("text", "blob")

    @staticmethod
    def is_filterable(column: Dict[str, Any], field_type: str) -> bool:
        if column.get("autoincrement") or column["name"] in ("created_at", "updated_at"):
            return False
        return field_type in ("string", "boolean", "integer")

    @staticmethod
    def is_searchable(column: Dict[str, Any], field_type: str) -> bool:
        if column.get("autoincrement") or column["name"] in ("created_at", "updated_at"):
            return False
        return field_type in ("string", "text")

    @staticmethod
    def is_listable(column: Dict[str, Any], field_type: str) -> bool:
        if column["name"] in UNLISTED_COLUMNS:
            return False
        return field_type in ("string", "boolean", "integer")

    @staticmethod
    def generate_validation(column: Dict[str, Any]) -> Dict[str, Any]:
        name = column["name"]
        rules: Dict[str, Any] = {}
        if not column.get("nullable", True) and name not in TIMESTAMP_COLUMNS and not column.get("autoincrement"):
            rules["required"] = True
        if column.get("length") and column["type"] in ("string", "text"):
            rules["length"] = {"min": 1, "max": column["length"]}
        if "email" in name:
            rules["email"] = True
        if "url" in name or "link" in name:
            rules["url"] = True
        if "slug" in name:
            rules["slug"] = True
        return rules
