"""
Field normalization.

Schemas may be written with ORM-style attributes (``nullable``,
``references``, ``ui``...), shorthand lookup keys or legacy boolean type
names. Normalization rewrites every field into the canonical shape consumed by
the context filter, the record repository and the sprunje.
"""
import re
from typing import Any, Dict, List

_BOOLEAN_VARIANT = re.compile(r"^boolean-(tgl|chk|sel|yn)$")
_BOOLEAN_UI = {"tgl": "toggle", "chk": "checkbox", "sel": "select", "yn": "select"}


def normalize(schema: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(schema.get("fields"), dict):
        return schema
    for field in schema["fields"].values():
        if not isinstance(field, dict):
            continue
        normalize_orm_attributes(field)
        normalize_lookup(field)
        normalize_visibility(field)
        normalize_boolean_type(field)
    return schema


def normalize_orm_attributes(field: Dict[str, Any]) -> None:
    if "nullable" in field and "required" not in field:
        field["required"] = not field["nullable"]
    if "required" in field and "nullable" not in field:
        field["nullable"] = not field["required"]
    if "autoIncrement" in field and "auto_increment" not in field:
        field["auto_increment"] = field["autoIncrement"]
    if "primaryKey" in field and "primary" not in field:
        field["primary"] = field["primaryKey"]

    validation = field.get("validation")
    if "unique" in field and not (isinstance(validation, dict) and "unique" in validation):
        field["validation"] = dict(validation or {})
        field["validation"]["unique"] = field["unique"]
    validation = field.get("validation")
    if "length" in field and not (isinstance(validation, dict) and "length" in validation):
        field["validation"] = dict(validation or {})
        field["validation"]["length"] = {"max": field["length"]}
    if "validate" in field and "validation" not in field:
        field["validation"] = field["validate"]

    references = field.get("references")
    if isinstance(references, dict):
        if "lookup" not in field:
            field["lookup"] = {
                "model": references.get("model") or references.get("table"),
                "id": references.get("key") or references.get("id") or "id",
                "desc": references.get("display") or references.get("desc") or "name",
            }
        if field.get("type") in (None, "integer") and ("display" in references or "desc" in references):
            field["type"] = "smartlookup"

    ui = field.get("ui")
    if isinstance(ui, dict):
        for key in ("label", "show_in", "sortable", "filterable"):
            if key in ui and key not in field:
                field[key] = ui[key]
        if "widget" in ui and field.get("type") == "boolean":
            field["ui"] = ui["widget"]
        elif ui.get("type") == "lookup" and field.get("type") in (None, "integer"):
            field["type"] = "smartlookup"

    if "defaultValue" in field and "default" not in field:
        field["default"] = field["defaultValue"]


def normalize_lookup(field: Dict[str, Any]) -> None:
    if field.get("type") != "smartlookup":
        return
    lookup = field.get("lookup")
    if isinstance(lookup, dict):
        for key in ("model", "id", "desc"):
            if key in lookup and f"lookup_{key}" not in field:
                field[f"lookup_{key}"] = lookup[key]
    # Shorthand keys are the last fallback
    for key in ("model", "id", "desc"):
        if f"lookup_{key}" not in field and key in field:
            field[f"lookup_{key}"] = field[key]


def _expand_show_in(show_in: List[str]) -> List[str]:
    expanded: List[str] = []
    for context in show_in:
        targets = ("create", "edit") if context == "form" else (context,)
        for target in targets:
            if target not in expanded:
                expanded.append(target)
    return expanded


def normalize_visibility(field: Dict[str, Any]) -> None:
    if isinstance(field.get("show_in"), list):
        show_in = _expand_show_in(field["show_in"])
        field["show_in"] = show_in
        field["listable"] = "list" in show_in
        field["editable"] = "create" in show_in or "edit" in show_in
        field["viewable"] = "detail" in show_in
        return

    listable = field.get("listable", True)
    editable = field.get("editable", True)
    viewable = field.get("viewable", True)
    show_in = []
    if listable:
        show_in.append("list")
    if editable:
        show_in.extend(["create", "edit"])
    # Password values are never rendered on detail pages
    if viewable and field.get("type", "string") != "password":
        show_in.append("detail")
    field["show_in"] = show_in
    field["listable"] = listable
    field["editable"] = editable
    field["viewable"] = viewable


def normalize_boolean_type(field: Dict[str, Any]) -> None:
    field_type = field.get("type", "string")
    match = _BOOLEAN_VARIANT.match(field_type) if isinstance(field_type, str) else None
    if match:
        field["type"] = "boolean"
        field.setdefault("ui", _BOOLEAN_UI.get(match.group(1), "checkbox"))
    elif field_type == "boolean" and "ui" not in field:
        field["ui"] = "checkbox"
