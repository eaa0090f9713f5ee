import pytest

from docrud import DB
from docrud.errors import StoreError, SystemValidationError
from docrud.query import And, Eq, In, Match, Or, QuerySpec, Range
from docrud.settings import PopulateSpec
from docrud.store import SQLAStore


@pytest.fixture
def store(app, models) -> SQLAStore:
    store = SQLAStore(models.User)
    store.insert_many(
        [
            {"firstName": "John", "email": "john@x.com", "age": 25, "active": True},
            {"firstName": "Mary", "email": "mary@x.com", "age": 40, "active": False},
            {"firstName": "Ann", "email": None, "age": None},
        ]
    )
    return store


def emails(docs) -> list:
    return [doc["email"] for doc in docs]


def test_model_info(app, models) -> None:
    store = SQLAStore(models.User)
    assert store.model_name == "User"
    assert store.id_field == "id"
    assert store.describe_fields()["age"] == "integer"
    assert store.describe_fields()["active"] == "boolean"
    assert store.describe_fields()["email"] == "string"


def test_coerce(app, models) -> None:
    store = SQLAStore(models.User)
    assert store.coerce("age", "18") == 18
    assert store.coerce("age", 18) == 18
    assert store.coerce("active", "false") is False
    assert store.coerce("active", "Yes") is True
    assert store.coerce("email", "18") == "18"
    assert store.coerce("unknown", "18") == "18"
    with pytest.raises(StoreError):
        store.coerce("age", "eighteen")
    with pytest.raises(StoreError):
        store.coerce("active", "maybe")


def test_normalize(app, models, memory_store) -> None:
    assert SQLAStore(models.User).normalize("age", "30") == 30
    assert SQLAStore(models.User).normalize("email", "30") == "30"
    # stores without a schema compare the raw values
    assert memory_store().normalize("age", "30") == "30"


def test_find_predicates(store: SQLAStore) -> None:
    assert emails(store.find(QuerySpec(Eq("age", "25")))) == ["john@x.com"]
    assert emails(store.find(QuerySpec(In("age", ("25", "40"))))) == ["john@x.com", "mary@x.com"]
    assert emails(store.find(QuerySpec(Range("age", (("gt", "25"), ("lte", "40")))))) == ["mary@x.com"]
    assert emails(store.find(QuerySpec(Eq("active", "false")))) == ["mary@x.com"]
    assert emails(store.find(QuerySpec(Or((Match("firstName", "J", True), Match("email", "MARY", False)))))) == ["john@x.com", "mary@x.com"]
    assert emails(store.find(QuerySpec(And((Match("firstName", "n", False), Range("age", (("gte", "20"),))))))) == ["john@x.com"]


def test_match_on_non_string_columns(store: SQLAStore) -> None:
    assert emails(store.find(QuerySpec(Match("age", "4")))) == ["mary@x.com"]


def test_unknown_columns_are_ignored(store: SQLAStore) -> None:
    assert len(store.find(QuerySpec(Eq("password", "x")))) == 3
    with pytest.raises(StoreError):
        store.find_one("password", "x")
    with pytest.raises(StoreError):
        store.find_in("password", ["x"])


def test_lookups(store: SQLAStore) -> None:
    assert store.find_one("email", "mary@x.com")["firstName"] == "Mary"
    assert store.find_one("email", "nobody@x.com") is None
    assert emails(store.find_in("email", ["john@x.com", "nobody@x.com"])) == ["john@x.com"]
    assert store.find_by_id("2")["firstName"] == "Mary"
    assert store.find_by_id(99) is None


def test_projection(store: SQLAStore) -> None:
    assert store.find_by_id(1, QuerySpec(fields=("firstName",))) == {"id": 1, "firstName": "John"}


def test_writes(store: SQLAStore) -> None:
    created = store.create({"id": 42, "firstName": "Bob", "password": "x"})
    # the identifier is generated by the store, unknown keys are ignored
    assert created["id"] == 4
    assert "password" not in created

    assert store.update(4, {"age": "33"})["age"] == 33
    assert store.update(99, {"age": 1}) is None
    assert store.delete(4)["firstName"] == "Bob"
    assert store.delete(4) is None


def test_unique_constraints(app, models) -> None:
    assert SQLAStore(models.Tag).has_unique_constraint("code")
    assert SQLAStore(models.Tag).has_unique_constraint("id")
    assert not SQLAStore(models.User).has_unique_constraint("email")
    assert not SQLAStore(models.User).has_unique_constraint("unknown")


def test_integrity_errors(app, models) -> None:
    from docrud.errors import IntegrityViolation

    store = SQLAStore(models.Tag)
    store.create({"code": "py"})
    with pytest.raises(IntegrityViolation):
        store.create({"code": "py"})
    with pytest.raises(IntegrityViolation):
        store.insert_many([{"code": "go"}, {"code": "go"}])
    # the session was rolled back
    assert [doc["code"] for doc in store.find(QuerySpec())] == ["py"]


def test_check_settings(app, models) -> None:
    store = SQLAStore(models.User)
    store.check_field("email")
    store.check_populate([PopulateSpec("department", populate=(PopulateSpec("users"),))])
    with pytest.raises(SystemValidationError):
        store.check_field("department")
    with pytest.raises(SystemValidationError):
        store.check_populate([PopulateSpec("department", populate=(PopulateSpec("manager"),))])


def test_populate_depth_guard(app, models, monkeypatch: pytest.MonkeyPatch) -> None:
    department = models.Department(name="R&D")
    DB.session.add(models.User(firstName="John", department=department))
    DB.session.commit()
    monkeypatch.setattr("docrud.DOCRUD.MAX_POPULATE_DEPTH", 1)

    store = SQLAStore(models.User)
    cyclic = PopulateSpec("department", populate=(PopulateSpec("users"),))
    document = store.find_by_id(1, QuerySpec(populate=(cyclic,)))
    # the nested users are not populated
    assert document["department"] == {"id": 1, "name": "R&D", "location": ""}
