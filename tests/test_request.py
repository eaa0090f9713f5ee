from flask import Flask, request
from werkzeug.datastructures import MultiDict

from docrud.request import DocrudRequest, parse_csv, parse_filter_args


def test_parse_filter_args() -> None:
    args = MultiDict(
        [
            ("filter[age][gte]", "18"),
            ("filter[age][lte]", "30"),
            ("filter[role]", "admin"),
            ("filter[role]", "dev"),
            ("filter[name]", "john"),
            ("filter[tags][]", "a"),
            ("search", "x"),
        ]
    )
    assert parse_filter_args(args) == {"age": {"gte": "18", "lte": "30"}, "role": ["admin", "dev"], "name": "john", "tags": ["a"]}


def test_range_operators_take_precedence() -> None:
    assert parse_filter_args(MultiDict([("filter[age]", "20"), ("filter[age][gt]", "18")])) == {"age": {"gt": "18"}}
    assert parse_filter_args(MultiDict([("filter[age][gt]", "18"), ("filter[age]", "20")])) == {"age": {"gt": "18"}}


def test_malformed_filter_args_are_ignored() -> None:
    assert parse_filter_args(MultiDict([("filter", "x"), ("filter[]", "y"), ("filter[a-b]", "z")])) == {}


def test_parse_csv() -> None:
    assert parse_csv(None) == []
    assert parse_csv("firstName, lastName,,") == ["firstName", "lastName"]


def test_request_arguments() -> None:
    app = Flask("request_test")
    app.request_class = DocrudRequest
    with app.test_request_context("/users?search=jo&searchFields=firstName,lastName&caseSensitive=TRUE&filter[age]=3", json={"a": 1}):
        assert request.search == "jo"
        assert request.search_fields == ["firstName", "lastName"]
        assert request.case_sensitive is True
        assert request.filters == {"age": "3"}
        assert request.payload == {"a": 1}
        request.payload = {"b": 2}
        assert request.payload == {"b": 2}


def test_request_defaults() -> None:
    app = Flask("request_test")
    app.request_class = DocrudRequest
    with app.test_request_context("/users"):
        assert request.search is None
        assert request.search_fields == []
        assert request.case_sensitive is False
        assert request.filters == {}
        assert request.payload is None
