"""
Schema action management.

Adds the default create/edit/delete actions a schema is entitled to,
completes toggle actions with their confirmation settings and filters actions
by the UI scope they belong to.
"""
import copy
import logging
from typing import Any, Dict, List

from crud6.schema.validator import has_permission

logger = logging.getLogger(__name__)


def _default_actions(schema: Dict[str, Any]) -> List[Dict[str, Any]]:
    permissions = schema.get("permissions") or {}
    return [
        {
            "operation": "create",
            "key": "create_action",
            "label": "CRUD6.CREATE",
            "icon": "plus",
            "type": "form",
            "style": "primary",
            "scope": "list",
            "permission": permissions.get("create", "create"),
            "modal_config": {"type": "form", "title": "CRUD6.CREATE"},
        },
        {
            "operation": "update",
            "key": "edit_action",
            "label": "CRUD6.EDIT",
            "icon": "pen-to-square",
            "type": "form",
            "style": "primary",
            "scope": "detail",
            "permission": permissions.get("update", "update"),
            "modal_config": {"type": "form", "title": "CRUD6.EDIT"},
        },
        {
            "operation": "delete",
            "key": "delete_action",
            "label": "CRUD6.DELETE",
            "icon": "trash",
            "type": "delete",
            "style": "danger",
            "scope": "detail",
            "permission": permissions.get("delete", "delete"),
            "confirm": "CRUD6.DELETE_CONFIRM",
            "modal_config": {"type": "confirm", "buttons": "yes_no", "warning": "WARNING_CANNOT_UNDONE"},
        },
    ]


def add_default_actions(schema: Dict[str, Any]) -> Dict[str, Any]:
    if schema.get("default_actions") is False:
        logger.debug("default_actions_disabled: model=%s", schema.get("model"))
        return schema

    actions = normalize_toggle_actions(list(schema.get("actions") or []), schema)
    existing = {action.get("key") for action in actions}

    defaults = []
    for action in _default_actions(schema):
        operation = action.pop("operation")
        if action["key"] in existing or not has_permission(schema, operation):
            continue
        defaults.append(action)

    # Defaults first so custom actions render after them
    schema["actions"] = defaults + actions
    logger.debug(
        "actions_resolved: model=%s keys=%s",
        schema.get("model"),
        [action.get("key") for action in schema["actions"]],
    )
    return schema


def normalize_toggle_actions(actions: List[Dict[str, Any]], schema: Dict[str, Any]) -> List[Dict[str, Any]]:
    normalized = []
    fields = schema.get("fields") or {}
    for action in actions:
        if action.get("type") != "field_update" or not action.get("toggle") or not action.get("field"):
            normalized.append(action)
            continue
        action = copy.deepcopy(action)
        field_name = action["field"]
        field = fields.get(field_name) or {}
        if "confirm" not in action:
            action.setdefault("field_label", field.get("label") or field_name.replace("_", " ").capitalize())
            action["confirm"] = "CRUD6.TOGGLE_CONFIRM"
        if "modal_config" not in action:
            action["modal_config"] = {"type": "confirm", "buttons": "yes_no"}
        else:
            action["modal_config"].setdefault("type", "confirm")
        normalized.append(action)
    return normalized


def filter_actions_by_scope(actions: List[Dict[str, Any]], scope: str) -> List[Dict[str, Any]]:
    """Keep actions whose ``scope`` (string or list) includes ``scope``."""
    filtered = []
    for action in actions:
        action_scope = action.get("scope")
        if action_scope is None:
            continue
        if isinstance(action_scope, list):
            if scope in action_scope:
                filtered.append(action)
        elif action_scope == scope:
            filtered.append(action)
    return filtered


def find_action(schema: Dict[str, Any], key: str):
    for action in schema.get("actions") or []:
        if action.get("key") == key:
            return action
    return None
