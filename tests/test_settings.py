import pytest

from docrud.errors import SystemValidationError
from docrud.settings import FilterConfig, PopulateSpec, SearchConfig, Settings, resolve_settings


def test_empty_settings_mean_no_restrictions() -> None:
    settings = resolve_settings()
    assert settings == Settings()
    assert settings.list_fields == ()
    assert settings.list.filter.allowed_fields == frozenset()
    assert settings.list.search == SearchConfig()


def test_nested_settings_are_resolved() -> None:
    settings = resolve_settings(
        {
            "list": {
                "keys": ["firstName", "email"],
                "populate": ["department"],
                "filter": {"allowed_fields": ["age", "role"]},
                "search": {"disabled": False, "allowed_fields": ["firstName", "lastName"]},
            },
            "get_by_id": {"keys": "firstName, lastName", "populate": [{"path": "department", "select": ["name"]}]},
        },
        primary_key="email",
    )
    assert settings.primary_key == "email"
    assert settings.list_fields == ("firstName", "email")
    assert settings.get_by_id_fields == ("firstName", "lastName")
    assert settings.list.populate == (PopulateSpec("department"),)
    assert settings.list.filter == FilterConfig(frozenset({"age", "role"}))
    assert settings.list.search.allowed_fields == ("firstName", "lastName")
    assert settings.get_by_id.populate == (PopulateSpec("department", select=("name",)),)


def test_nested_keys_take_precedence_over_deprecated_fields() -> None:
    with pytest.warns(DeprecationWarning):
        settings = resolve_settings({"list": {"keys": ["firstName"]}}, list_fields=["email"], get_by_id_fields=["age"])
    assert settings.list_fields == ("firstName",)
    # no nested get_by_id keys: the deprecated field is used
    assert settings.get_by_id_fields == ("age",)


def test_legacy_get_section_is_the_list_section() -> None:
    with pytest.warns(DeprecationWarning):
        settings = resolve_settings({"get": {"keys": ["email"], "filter": {"allowed_fields": ["age"]}}})
    assert settings.list_fields == ("email",)
    assert settings.list.filter.allowed_fields == frozenset({"age"})


def test_resolved_settings_pass_through() -> None:
    settings = resolve_settings({"list": {"keys": ["email"]}})
    assert resolve_settings(settings) is settings
    assert resolve_settings(settings, primary_key="email").primary_key == "email"


def test_settings_are_immutable() -> None:
    settings = resolve_settings()
    with pytest.raises(AttributeError):
        settings.primary_key = "email"


@pytest.mark.parametrize(
    "raw",
    [
        {"lists": {}},
        {"list": {"keys": [1, 2]}},
        {"list": {"sort": ["age"]}},
        {"list": {"search": {"disabled": "yes"}}},
        {"list": {"filter": ["age"]}},
        {"list": {"populate": [{"select": ["name"]}]}},
        {"get_by_id": {"populate": [{"path": "department", "match": {}}]}},
        "list",
    ],
)
def test_malformed_settings_are_rejected(raw) -> None:
    with pytest.raises(SystemValidationError):
        resolve_settings(raw)


def test_populate_depth_is_bounded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("docrud.DOCRUD.MAX_POPULATE_DEPTH", 2)
    nested = {"path": "a", "populate": [{"path": "b"}]}
    assert resolve_settings({"list": {"populate": [nested]}}).list.populate[0].depth == 2

    too_deep = {"path": "a", "populate": [{"path": "b", "populate": ["c"]}]}
    with pytest.raises(SystemValidationError):
        resolve_settings({"list": {"populate": [too_deep]}})
