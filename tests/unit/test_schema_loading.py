import json

import pytest

from crud6.config import refresh_settings_cache
from crud6.exceptions import SchemaNotFoundException, SchemaValidationException
from crud6.schema import loader, validator
from crud6.schema.cache import SchemaCache
from crud6.schema.service import SchemaService


def _write(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


@pytest.fixture
def schema_root(tmp_path, monkeypatch):
    monkeypatch.setenv("CRUD6_SCHEMA_PATH", str(tmp_path))
    refresh_settings_cache()
    return tmp_path


def _minimal(model="widgets", **extra):
    schema = {"model": model, "table": model, "fields": {"name": {"type": "string"}}}
    schema.update(extra)
    return schema


def test_resolve_path_prefers_connection_folder(schema_root):
    _write(schema_root / "widgets.json", _minimal())
    _write(schema_root / "analytics" / "widgets.json", _minimal(title="Remote"))

    path, from_connection = loader.resolve_path("widgets", "analytics")
    assert path == schema_root / "analytics" / "widgets.json"
    assert from_connection is True

    path, from_connection = loader.resolve_path("widgets", "other")
    assert path == schema_root / "widgets.json"
    assert from_connection is False

    assert loader.resolve_path("gadgets") == (None, False)


def test_load_rejects_invalid_json(schema_root):
    (schema_root / "bad.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(SchemaValidationException):
        loader.load("bad")

    (schema_root / "list.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(SchemaValidationException):
        loader.load("list")


def test_apply_defaults_keeps_explicit_values():
    schema = loader.apply_defaults({"primary_key": "uuid"})
    assert schema == {"primary_key": "uuid", "timestamps": True, "soft_delete": False}


def test_validator_messages():
    with pytest.raises(SchemaValidationException) as exc:
        validator.validate({"model": "widgets"}, "widgets")
    assert "table, fields" in exc.value.message

    with pytest.raises(SchemaValidationException):
        validator.validate(_minimal("gadgets"), "widgets")

    with pytest.raises(SchemaValidationException):
        validator.validate(_minimal(fields={}), "widgets")

    validator.validate(_minimal(), "widgets")


def test_has_permission():
    assert validator.has_permission({"permissions": {"create": "create_widget"}}, "create") is True
    assert validator.has_permission({"permissions": {"create": ""}}, "create") is False
    assert validator.has_permission({}, "delete") is False


def test_service_builds_processed_schema(schema_root):
    _write(schema_root / "widgets.json", _minimal(permissions={"create": "create_widget"}))
    service = SchemaService(SchemaCache(expiring=False))

    schema = service.get_schema("widgets")
    assert schema["primary_key"] == "id"
    assert schema["fields"]["name"]["show_in"] == ["list", "create", "edit", "detail"]
    assert [action["key"] for action in schema["actions"]] == ["create_action"]
    assert "connection" not in schema


def test_service_sets_connection_from_folder(schema_root):
    _write(schema_root / "analytics" / "widgets.json", _minimal())
    service = SchemaService(SchemaCache(expiring=False))
    assert service.get_schema("widgets", "analytics")["connection"] == "analytics"


def test_service_caches_and_returns_copies(schema_root):
    path = schema_root / "widgets.json"
    _write(path, _minimal(title="First"))
    service = SchemaService(SchemaCache(expiring=False))

    first = service.get_schema("widgets")
    first["title"] = "Mutated"
    _write(path, _minimal(title="Second"))
    assert service.get_schema("widgets")["title"] == "First"

    service.clear_cache("widgets")
    assert service.get_schema("widgets")["title"] == "Second"


def test_service_missing_schema(schema_root):
    service = SchemaService(SchemaCache(expiring=False))
    with pytest.raises(SchemaNotFoundException) as exc:
        service.get_schema("ghosts")
    assert exc.value.status_code == 404
    assert exc.value.message == "Schema file not found for model: ghosts"


def test_context_schema_is_translated(schema_root):
    _write(schema_root / "widgets.json", _minimal(permissions={"create": "create_widget"}))
    service = SchemaService(SchemaCache(expiring=False))
    schema = service.get_context_schema("widgets", "list")
    assert schema["actions"][0]["label"] == "Create"
    assert list(schema["fields"]) == ["name"]
