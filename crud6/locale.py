"""
Message catalogs for API responses and schema labels.

Catalogs are keyed by locale. The active locale comes from ``CRUD6_LOCALE``;
keys missing from it fall back to ``en_US``.
"""
import re
from typing import Any, Dict, Optional

from crud6.config import get_settings

DEFAULT_LOCALE = "en_US"

_PLACEHOLDER = re.compile(r"\{\{\s*([^}\s]+)\s*\}\}")

EN_US: Dict[str, str] = {
    "CRUD6.CREATE.SUCCESS": "Successfully created {{model}}",
    "CRUD6.CREATE.SUCCESS_TITLE": "Created",
    "CRUD6.CREATE.ERROR": "Failed to create {{model}}",
    "CRUD6.CREATE": "Create",
    "CRUD6.EDIT.SUCCESS": "Retrieved {{model}} for editing",
    "CRUD6.EDIT.ERROR": "Failed to retrieve {{model}}",
    "CRUD6.EDIT": "Edit",
    "CRUD6.UPDATE.SUCCESS": "Successfully updated {{model}}",
    "CRUD6.UPDATE.SUCCESS_TITLE": "Updated",
    "CRUD6.UPDATE.ERROR": "Failed to update {{model}}",
    "CRUD6.UPDATE_FIELD_SUCCESSFUL": "Successfully updated {{field}} for {{model}}",
    "CRUD6.DELETE.SUCCESS": "Successfully deleted {{model}}",
    "CRUD6.DELETE.ERROR": "Failed to delete {{model}}",
    "CRUD6.DELETE": "Delete",
    "CRUD6.DELETE_CONFIRM": "Are you sure you want to delete this {{model}}?",
    "CRUD6.ACTION.SUCCESS": "Action completed successfully",
    "CRUD6.ACTION.SUCCESS_TITLE": "Success",
    "CRUD6.RELATIONSHIP.ATTACH_SUCCESS": "Successfully attached {{count}} {{relation}}",
    "CRUD6.RELATIONSHIP.DETACH_SUCCESS": "Successfully detached {{count}} {{relation}}",
    "CRUD6.SCHEMA.SUCCESS": "Schema retrieved for {{model}}",
    "CRUD6.TOGGLE_CONFIRM": "Are you sure you want to toggle {{field}} for {{title}}?",
    "CRUD6.NOT_FOUND": "Record not found",
}

FR_FR: Dict[str, str] = {
    "CRUD6.CREATE.SUCCESS": "{{model}} créé avec succès",
    "CRUD6.CREATE.SUCCESS_TITLE": "Créé !",
    "CRUD6.CREATE.ERROR": "Échec de la création de {{model}}",
    "CRUD6.CREATE": "Créer",
    "CRUD6.EDIT.SUCCESS": "{{model}} récupéré pour modification",
    "CRUD6.EDIT.ERROR": "Échec de la récupération de {{model}}",
    "CRUD6.EDIT": "Modifier",
    "CRUD6.UPDATE.SUCCESS": "{{model}} mis à jour avec succès",
    "CRUD6.UPDATE.SUCCESS_TITLE": "Mis à jour !",
    "CRUD6.UPDATE.ERROR": "Échec de la mise à jour de {{model}}",
    "CRUD6.UPDATE_FIELD_SUCCESSFUL": "{{field}} mis à jour avec succès pour {{model}}",
    "CRUD6.DELETE.SUCCESS": "{{model}} supprimé avec succès",
    "CRUD6.DELETE.ERROR": "Échec de la suppression de {{model}}",
    "CRUD6.DELETE": "Supprimer",
    "CRUD6.DELETE_CONFIRM": "Êtes-vous sûr de vouloir supprimer la ligne de {{model}} ?",
    "CRUD6.RELATIONSHIP.ATTACH_SUCCESS": "{{count}} {{relation}} attaché(s) avec succès",
    "CRUD6.RELATIONSHIP.DETACH_SUCCESS": "{{count}} {{relation}} détaché(s) avec succès",
    "CRUD6.TOGGLE_CONFIRM": "Êtes-vous sûr de vouloir basculer {{field}} pour {{title}} ?",
    "CRUD6.NOT_FOUND": "{{model}} non trouvé",
}

CATALOGS: Dict[str, Dict[str, str]] = {
    "en_US": EN_US,
    "fr_FR": FR_FR,
}


def active_locale() -> str:
    configured = get_settings().locale
    return configured if configured in CATALOGS else DEFAULT_LOCALE


def _lookup(key: str, locale: Optional[str] = None) -> Optional[str]:
    catalog = CATALOGS.get(locale or active_locale(), EN_US)
    return catalog.get(key, EN_US.get(key))


def has_message(key: str, locale: Optional[str] = None) -> bool:
    return _lookup(key, locale) is not None


def interpolate(template: str, params: Dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown placeholders are left intact."""
    def _sub(match):
        name = match.group(1)
        if name in params and params[name] is not None:
            return str(params[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


def has_placeholders(text: str) -> bool:
    return bool(_PLACEHOLDER.search(text))


def translate(key: str, locale: Optional[str] = None, **params: Any) -> str:
    """Return the interpolated message for ``key`` or the key itself when unknown."""
    template = _lookup(key, locale)
    if template is None:
        return key
    return interpolate(template, params)
