from docrud.query import (
    And,
    Eq,
    In,
    Match,
    Or,
    Range,
    QuerySpec,
    build_get_by_id_query,
    build_list_query,
    combine,
    compile_filter,
    compile_search,
    resolve_search_fields,
)
from docrud.settings import FilterConfig, SearchConfig, resolve_settings

FILTER_CONFIG = FilterConfig(frozenset({"age", "role", "name"}))
SEARCH_CONFIG = SearchConfig(allowed_fields=("firstName", "lastName", "email"))


def test_filter_compiles_each_value_shape() -> None:
    predicate = compile_filter({"age": {"gte": "18", "lte": "30"}, "role": ["admin", "dev"], "name": "john"}, FILTER_CONFIG)
    assert predicate == And((Range("age", (("gte", "18"), ("lte", "30"))), In("role", ("admin", "dev")), Eq("name", "john")))


def test_filter_drops_fields_that_are_not_allowed() -> None:
    assert compile_filter({"password": "secret"}, FILTER_CONFIG) is None
    assert compile_filter({"password": "secret", "age": "20"}, FILTER_CONFIG) == And((Eq("age", "20"),))


def test_filter_drops_unknown_operators() -> None:
    assert compile_filter({"age": {"gte": "18", "regex": ".*"}}, FILTER_CONFIG) == And((Range("age", (("gte", "18"),)),))
    assert compile_filter({"age": {"ne": "18"}}, FILTER_CONFIG) is None


def test_empty_filters() -> None:
    assert compile_filter(None, FILTER_CONFIG) is None
    assert compile_filter({}, FILTER_CONFIG) is None
    assert compile_filter({"age": "18"}, FilterConfig()) is None


def test_search_fields_resolution() -> None:
    assert resolve_search_fields(["lastName", "password"], SEARCH_CONFIG) == ("lastName",)
    # allow-list order is kept
    assert resolve_search_fields(["email", "firstName"], SEARCH_CONFIG) == ("firstName", "email")
    assert resolve_search_fields(None, SEARCH_CONFIG) == ("firstName", "lastName", "email")
    assert resolve_search_fields(["firstName"], SearchConfig()) == ()


def test_search_compiles_an_or_of_matches() -> None:
    predicate = compile_search("john", False, ["firstName", "lastName"], SEARCH_CONFIG)
    assert predicate == Or((Match("firstName", "john", False), Match("lastName", "john", False)))
    assert compile_search("John", True, ["firstName"], SEARCH_CONFIG) == Or((Match("firstName", "John", True),))


def test_search_is_skipped() -> None:
    assert compile_search("", False, None, SEARCH_CONFIG) is None
    assert compile_search("   ", False, None, SEARCH_CONFIG) is None
    assert compile_search(None, False, None, SEARCH_CONFIG) is None
    assert compile_search("john", False, None, SearchConfig(disabled=True, allowed_fields=("firstName",))) is None
    # no searchable fields
    assert compile_search("john", False, ["firstName"], SearchConfig()) is None
    assert compile_search("john", False, ["password"], SEARCH_CONFIG) is None


def test_combine() -> None:
    assert combine(None, None) is None
    assert combine(Eq("a", 1), None) == Eq("a", 1)
    assert combine(Eq("a", 1), Eq("b", 2)) == And((Eq("a", 1), Eq("b", 2)))


def test_list_query() -> None:
    settings = resolve_settings(
        {
            "list": {
                "keys": ["firstName"],
                "populate": ["department"],
                "filter": {"allowed_fields": ["age"]},
                "search": {"allowed_fields": ["firstName"]},
            }
        }
    )
    query = build_list_query(settings, {"age": "30", "role": "admin"}, "jo", False, None)
    assert query.fields == ("firstName",)
    assert [spec.path for spec in query.populate] == ["department"]
    assert query.predicate == And((And((Eq("age", "30"),)), Or((Match("firstName", "jo", False),))))

    assert build_list_query(settings) == QuerySpec(fields=("firstName",), populate=settings.list.populate)


def test_get_by_id_query() -> None:
    settings = resolve_settings({"get_by_id": {"keys": ["email"], "populate": ["department"]}})
    query = build_get_by_id_query(settings)
    assert query.predicate is None
    assert query.fields == ("email",)
    assert query.populate == settings.get_by_id.populate
