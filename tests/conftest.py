from types import SimpleNamespace

import pytest
from flask import Flask
from marshmallow import Schema, fields

from docrud import DB, DocrudAPI
from docrud.store import DocumentStore


class Department(DB.Model):
    __tablename__ = "departments"
    id = DB.Column(DB.Integer, primary_key=True)
    name = DB.Column(DB.String, nullable=False)
    location = DB.Column(DB.String, default="")
    users = DB.relationship("User", back_populates="department")


class User(DB.Model):
    """
    email uniqueness is not enforced by the database, docrud enforces it
    """

    __tablename__ = "users"
    id = DB.Column(DB.Integer, primary_key=True)
    firstName = DB.Column(DB.String, default="")
    lastName = DB.Column(DB.String, default="")
    email = DB.Column(DB.String)
    age = DB.Column(DB.Integer)
    role = DB.Column(DB.String, default="user")
    active = DB.Column(DB.Boolean, default=True)
    department_id = DB.Column(DB.Integer, DB.ForeignKey("departments.id"))
    department = DB.relationship("Department", back_populates="users")


class Tag(DB.Model):
    """
    code has a unique constraint
    """

    __tablename__ = "tags"
    id = DB.Column(DB.Integer, primary_key=True)
    code = DB.Column(DB.String, unique=True)
    label = DB.Column(DB.String, default="")


class UserSchema(Schema):
    firstName = fields.String(required=True)
    lastName = fields.String(load_default="")
    email = fields.Email(required=True)
    age = fields.Integer()
    role = fields.String(load_default="user")
    department_id = fields.Integer(allow_none=True)


@pytest.fixture
def models() -> SimpleNamespace:
    return SimpleNamespace(User=User, Department=Department, Tag=Tag, UserSchema=UserSchema)


@pytest.fixture
def app():
    app = Flask("docrud_test")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    DB.init_app(app)
    with app.app_context():
        DB.create_all()
        yield app
        DB.session.remove()
        DB.drop_all()


@pytest.fixture
def api(app) -> DocrudAPI:
    return DocrudAPI(app, prefix="/api")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users_api(api, models) -> DocrudAPI:
    api.expose_resource(
        {
            "model": models.User,
            "path": "users",
            "primary_key": "email",
            "validation_schema": models.UserSchema,
            "settings": {
                "list": {
                    "filter": {"allowed_fields": ["age", "role", "active"]},
                    "search": {"allowed_fields": ["firstName", "lastName"]},
                },
            },
        }
    )
    return api


@pytest.fixture
def departments(app, models) -> list:
    result = [models.Department(name="R&D", location="Ghent"), models.Department(name="Sales", location="Brussels")]
    DB.session.add_all(result)
    DB.session.commit()
    return result


class MemoryStore(DocumentStore):
    """
    In-memory document store, predicates are not evaluated except for the primary key lookups
    """

    model_name = "User"
    id_field = "id"

    def __init__(self, docs=(), unique_fields=()) -> None:
        self.docs = {doc["id"]: dict(doc) for doc in docs}
        self.unique_fields = set(unique_fields)
        self.queries = []
        self.fail_with = None
        self._next_id = max(self.docs, default=0) + 1

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def create(self, data):
        self._check()
        doc = dict(data, id=self._next_id)
        self._next_id += 1
        self.docs[doc["id"]] = doc
        return doc

    def update(self, doc_id, data):
        self._check()
        doc = self.docs.get(int(doc_id))
        if doc is None:
            return None
        doc.update(data)
        return doc

    def delete(self, doc_id):
        self._check()
        return self.docs.pop(int(doc_id), None)

    def find(self, query):
        self._check()
        self.queries.append(query)
        return list(self.docs.values())

    def find_by_id(self, doc_id, query=None):
        self._check()
        self.queries.append(query)
        return self.docs.get(int(doc_id))

    def find_one(self, field_name, value):
        return next((doc for doc in self.docs.values() if doc.get(field_name) == value), None)

    def find_in(self, field_name, values):
        return [doc for doc in self.docs.values() if doc.get(field_name) in values]

    def insert_many(self, docs):
        return [self.create(doc) for doc in docs]

    def has_unique_constraint(self, field_name):
        return field_name in self.unique_fields


@pytest.fixture
def memory_store():
    return MemoryStore
