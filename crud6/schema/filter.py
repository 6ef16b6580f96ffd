"""
Context filtering.

The frontend asks for the slice of a schema it is about to render (``list``,
``detail``, ``create``, ``edit``, ``form`` or ``meta``) instead of the whole
document. Several contexts may be requested at once as a comma-separated
string; the response then carries a ``contexts`` mapping.
"""
from typing import Any, Dict, List, Optional

FORM_OPTIONAL_KEYS = ("validation", "placeholder", "description", "default", "icon", "rows", "editable", "show_in")
LOOKUP_KEYS = ("lookup_model", "lookup_id", "lookup_desc", "model", "id", "desc")
DETAIL_SCHEMA_KEYS = ("detail", "details", "actions", "relationships", "detail_editable", "render_mode", "title_field")


def _title(schema: Dict[str, Any]) -> str:
    return schema.get("title") or schema["model"].capitalize()


def _base(schema: Dict[str, Any]) -> Dict[str, Any]:
    base = {
        "model": schema["model"],
        "title": _title(schema),
        "singular_title": schema.get("singular_title") or _title(schema),
        "primary_key": schema.get("primary_key", "id"),
    }
    for key in ("description", "permissions"):
        if key in schema:
            base[key] = schema[key]
    return base


def filter_for_context(schema: Dict[str, Any], context: Optional[str] = None) -> Dict[str, Any]:
    if context is None or context == "full":
        return schema
    if "," in context:
        contexts = [part.strip() for part in context.split(",") if part.strip()]
        return _filter_multiple(schema, contexts)

    data = context_data(schema, context)
    if data is None:
        # Unknown context: fall back to the whole schema
        return schema
    filtered = _base(schema)
    filtered.update(data)
    return filtered


def _filter_multiple(schema: Dict[str, Any], contexts: List[str]) -> Dict[str, Any]:
    filtered = {
        "model": schema["model"],
        "title": _title(schema),
        "singular_title": schema.get("singular_title") or _title(schema),
        "primary_key": schema.get("primary_key", "id"),
    }
    for key in ("title_field", "description", "permissions", "actions"):
        if key in schema:
            filtered[key] = schema[key]
    filtered["contexts"] = {}
    for context in contexts:
        data = context_data(schema, context)
        if data is not None:
            filtered["contexts"][context] = data
    return filtered


def context_data(schema: Dict[str, Any], context: str) -> Optional[Dict[str, Any]]:
    if context == "meta":
        return {}
    if context == "list":
        return _list_data(schema)
    if context in ("create", "edit"):
        return _form_data(schema, context)
    if context == "form":
        return _combined_form_data(schema)
    if context == "detail":
        return _detail_data(schema)
    return None


def _list_data(schema: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {"fields": {}, "default_sort": schema.get("default_sort") or {}}
    for key, field in schema["fields"].items():
        show = "list" in field["show_in"] if "show_in" in field else field.get("listable", False)
        if not show:
            continue
        entry = {
            "type": field.get("type", "string"),
            "label": field.get("label", key),
            "sortable": field.get("sortable", False),
            "filterable": field.get("filterable", False),
        }
        for optional in ("width", "field_template"):
            if optional in field:
                entry[optional] = field[optional]
        if "filter_type" in field and field.get("filterable", False):
            entry["filter_type"] = field["filter_type"]
        data["fields"][key] = entry
    if "actions" in schema:
        data["actions"] = schema["actions"]
    return data


def _detail_data(schema: Dict[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {"fields": {}}
    for key, field in schema["fields"].items():
        show = "detail" in field["show_in"] if "show_in" in field else field.get("viewable", True)
        if not show:
            continue
        field_type = field.get("type", "string")
        readonly = field.get("readonly", field_type == "password")
        entry = {
            "type": field_type,
            "label": field.get("label", key),
            "editable": field.get("editable", not readonly),
            "readonly": readonly,
        }
        for optional in ("description", "field_template", "default"):
            if optional in field:
                entry[optional] = field[optional]
        data["fields"][key] = entry
    for key in DETAIL_SCHEMA_KEYS:
        if key in schema:
            data[key] = schema[key]
    return data


def _form_data(schema: Dict[str, Any], context: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {"fields": {}}
    for key, field in schema["fields"].items():
        if isinstance(field.get("show_in"), list):
            show = context in field["show_in"]
        else:
            show = field.get("editable", True) is not False
        if not show:
            continue
        entry = {
            "type": field.get("type", "string"),
            "label": field.get("label", key),
            "required": field.get("required", False),
            "editable": field.get("editable", True),
        }
        for optional in FORM_OPTIONAL_KEYS:
            if optional in field:
                entry[optional] = field[optional]
        if field.get("type") == "smartlookup":
            for lookup_key in LOOKUP_KEYS:
                if lookup_key in field:
                    entry[lookup_key] = field[lookup_key]
        data["fields"][key] = entry
    return data


def _combined_form_data(schema: Dict[str, Any]) -> Dict[str, Any]:
    fields = dict(_form_data(schema, "create")["fields"])
    for key, entry in _form_data(schema, "edit")["fields"].items():
        fields.setdefault(key, entry)
    return {"fields": fields}
