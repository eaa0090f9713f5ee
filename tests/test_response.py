import datetime
import decimal
import uuid

import pytest
from flask import Flask

from docrud.json_encoder import DocrudJSONProvider
from docrud.response import Envelope
from docrud.util import pluralize


@pytest.mark.parametrize(
    "word, plural",
    [("User", "Users"), ("Category", "Categories"), ("Key", "Keys"), ("Box", "Boxes"), ("Branch", "Branches"), ("Status", "Statuses"), ("", "")],
)
def test_pluralize(word: str, plural: str) -> None:
    assert pluralize(word) == plural


def test_envelope() -> None:
    assert Envelope.ok("User fetched successfully", {"id": 1}).to_dict() == {
        "success": True,
        "statusCode": 200,
        "message": "User fetched successfully",
        "data": {"id": 1},
    }
    assert Envelope.failure(400, "Validation error", "email: invalid").to_dict() == {
        "success": False,
        "statusCode": 400,
        "message": "Validation error",
        "error": "email: invalid",
    }
    assert Envelope.failure(404, "User not found").to_dict()["data"] is None


def test_json_provider() -> None:
    provider = DocrudJSONProvider(Flask("json_test"))
    value = {
        "created": datetime.datetime(2024, 1, 2, 3, 4, 5),
        "birthday": datetime.date(2000, 1, 1),
        "price": decimal.Decimal("1.5"),
        "uid": uuid.UUID(int=1),
        "raw": b"\x01",
        "envelope": Envelope.ok("ok"),
    }
    assert provider.loads(provider.dumps(value)) == {
        "created": "2024-01-02 03:04:05",
        "birthday": "2000-01-01",
        "price": 1.5,
        "uid": "00000000-0000-0000-0000-000000000001",
        "raw": "01",
        "envelope": {"success": True, "statusCode": 200, "message": "ok", "data": None},
    }
