import pytest

from crud6.exceptions import ValidationException
from crud6.services.sprunje import (
    DEFAULT_PAGE_SIZE,
    SprunjeOptions,
    filterable_fields,
    listable_fields,
    parse_options,
    sortable_fields,
)


def test_parse_bracketed_params():
    options = parse_options([
        ("size", "5"),
        ("page", "2"),
        ("sorts[name]", "DESC"),
        ("filters[status]", "a||b"),
        ("lists[]", "status"),
        ("lists[0]", "group"),
        ("lists[kind]", "1"),
        ("unrelated", "x"),
    ])
    assert options == SprunjeOptions(
        size=5,
        page=2,
        sorts={"name": "desc"},
        filters={"status": "a||b"},
        lists=["status", "group", "kind"],
    )


def test_search_maps_to_all_filter():
    assert parse_options({"search": "abc"}).filters == {"_all": "abc"}
    assert parse_options({"search": ""}).filters == {}


def test_paging_defaults():
    assert parse_options({}) == SprunjeOptions()
    assert parse_options({"size": "all"}).size is None
    assert parse_options({"page": "3"}).size == DEFAULT_PAGE_SIZE
    assert parse_options({"size": "20"}).page == 0


@pytest.mark.parametrize("params", [{"size": "ten"}, {"page": "-1"}, {"size": "-5"}])
def test_invalid_paging(params):
    with pytest.raises(ValidationException):
        parse_options(params)


def test_field_selectors():
    schema = {"fields": {
        "id": {"type": "integer", "sortable": True, "listable": True},
        "name": {"type": "string", "sortable": True, "filterable": True, "listable": True},
        "bio": {"type": "text", "searchable": True, "filterable": False},
        "password": {"type": "password", "listable": True},
        "tags": {"type": "multiselect", "listable": True},
        "stamp": {"type": "datetime", "readonly": True},
        "code": {"type": "string"},
    }}
    assert sortable_fields(schema) == ["id", "name"]
    assert filterable_fields(schema) == ["name"]
    assert listable_fields(schema) == ["id", "name", "bio", "code"]
