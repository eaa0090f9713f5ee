# -*- coding: utf-8 -*-
"""
    store.py: the document store interface and its SQLAlchemy implementation

    A "document" is the mapping representation of a model instance:
    the column attributes of the instance and, when populated, the embedded
    related documents.
"""
#
# pylint: disable=logging-format-interpolation,line-too-long,protected-access
import datetime
import operator
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import sqlalchemy
from sqlalchemy import and_, or_, String
from sqlalchemy import inspect as sqla_inspect
from sqlalchemy.orm import joinedload

import docrud
from .config import get_int_config
from .errors import IntegrityViolation, StoreError, SystemValidationError
from .query import And, Eq, In, Match, Or, Predicate, QuerySpec, Range
from .settings import PopulateSpec

DocumentValue = Union[str, int, float, bool, None, datetime.date, List["DocumentValue"], Dict[str, "DocumentValue"]]
Document = Dict[str, DocumentValue]

# map the filter range operators to the python operators, these are overloaded by the sqla columns
RANGE_OPERATORS = {"gte": operator.ge, "lte": operator.le, "gt": operator.gt, "lt": operator.lt}
TRUE_STRINGS = ("true", "1", "yes", "on")
FALSE_STRINGS = ("false", "0", "no", "off")
# relationships with these loading strategies can be eager loaded
EAGER_LOADABLE = ("select", "joined", "subquery", "selectin")
# python type => swagger type of the documented fields
SWAGGER_TYPES = {int: "integer", float: "number", bool: "boolean", dict: "object", list: "array"}


class DocumentStore(ABC):
    """
    The primitives used by the resource controller.

    Lookups return None when no document matches, failures raise a StoreError
    (IntegrityViolation when the store rejected a write because of a constraint).
    """

    model_name: str = ""
    id_field: str = "id"

    @abstractmethod
    def create(self, data: Document) -> Document:
        pass

    @abstractmethod
    def update(self, doc_id: Any, data: Document) -> Optional[Document]:
        """
        :return: the updated document or None if no document has doc_id
        """

    @abstractmethod
    def delete(self, doc_id: Any) -> Optional[Document]:
        """
        :return: the deleted document or None if no document has doc_id
        """

    @abstractmethod
    def find(self, query: QuerySpec) -> List[Document]:
        pass

    @abstractmethod
    def find_by_id(self, doc_id: Any, query: Optional[QuerySpec] = None) -> Optional[Document]:
        pass

    @abstractmethod
    def find_one(self, field_name: str, value: Any) -> Optional[Document]:
        pass

    @abstractmethod
    def find_in(self, field_name: str, values: Sequence[Any]) -> List[Document]:
        pass

    @abstractmethod
    def insert_many(self, docs: Sequence[Document]) -> List[Document]:
        pass

    def check_populate(self, specs: Sequence[PopulateSpec]) -> None:
        """
        Validate the populate settings at registration time
        """

    def check_field(self, field_name: str) -> None:
        """
        Validate a field name used in the settings at registration time
        """

    def describe_fields(self) -> Dict[str, str]:
        """
        :return: field name => swagger type, used to document the endpoints
        """
        return {}

    def has_unique_constraint(self, field_name: str) -> bool:
        """
        :return: True if the store itself rejects duplicate field_name values
        """
        return False

    def normalize(self, field_name: str, value: Any) -> Any:
        """
        :return: the value as the store compares it, eg. "30" for an integer field becomes 30
        """
        return value


class SQLAStore(DocumentStore):
    """
    Document store backed by an SQLAlchemy model

    The filter values arrive as query string arguments, they are coerced to the
    python type of the column (eg. "18" => 18 for an Integer column).
    """

    def __init__(self, model, db=None) -> None:
        """
        :param model: SQLAlchemy declarative class (e.g. a DB.Model subclass)
        :param db: Flask-SQLAlchemy extension object, defaults to docrud.DB
        """
        mapper = sqla_inspect(model)
        if len(mapper.primary_key) != 1:
            raise SystemValidationError(f"{model.__name__}: only single column primary keys are supported")
        self.model = model
        self.model_name = model.__name__
        self.id_field = mapper.get_property_by_column(mapper.primary_key[0]).key
        self._db = db

    @property
    def session(self):
        db = self._db if self._db is not None else docrud.DB
        return db.session

    @staticmethod
    def _columns(model) -> Dict[str, Any]:
        """
        :return: column attribute name => sqla Column
        """
        return {attr.key: attr.columns[0] for attr in sqla_inspect(model).column_attrs}

    @staticmethod
    def _relationships(model) -> Dict[str, Any]:
        return {rel.key: rel for rel in sqla_inspect(model).relationships}

    @staticmethod
    def _id_field(model) -> str:
        mapper = sqla_inspect(model)
        return mapper.get_property_by_column(mapper.primary_key[0]).key

    def _store_error(self, exc: Exception) -> StoreError:
        """
        Rollback the session and wrap the exception
        """
        self.session.rollback()
        if isinstance(exc, sqlalchemy.exc.IntegrityError):
            return IntegrityViolation(str(exc.orig))
        return StoreError(str(exc))

    #
    # Value coercion
    #
    def coerce(self, field_name: str, value: Any) -> Any:
        """
        Convert a string value to the python type of the column
        :param field_name: column attribute name
        :param value: value to be converted
        :return: converted value
        """
        column = self._columns(self.model).get(field_name)
        if column is None or not isinstance(value, str):
            return value
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return value
        if python_type in (str, dict, list, bytes):
            return value
        try:
            if python_type is bool:
                lowered = value.lower()
                if lowered in TRUE_STRINGS:
                    return True
                if lowered in FALSE_STRINGS:
                    return False
                raise ValueError(value)
            if python_type in (datetime.datetime, datetime.date, datetime.time):
                return python_type.fromisoformat(value)
            return python_type(value)
        except (ValueError, TypeError, ArithmeticError):
            raise StoreError(f'Invalid {self.model_name}.{field_name} value "{value}"')

    def normalize(self, field_name: str, value: Any) -> Any:
        return self.coerce(field_name, value)

    def _attributes(self, data: Document) -> Dict[str, Any]:
        """
        :return: the column attributes of a write payload, other keys are ignored
        """
        columns = self._columns(self.model)
        return {key: self.coerce(key, value) for key, value in data.items() if key in columns and key != self.id_field}

    #
    # Predicate translation
    #
    def where(self, predicate: Optional[Predicate]):
        """
        Translate a query predicate to an sqla expression
        :param predicate: query predicate
        :return: sqla expression or None when the predicate doesn't apply to the model columns
        """
        if predicate is None:
            return None
        if isinstance(predicate, (And, Or)):
            clauses = [clause for clause in (self.where(p) for p in predicate.clauses) if clause is not None]
            if not clauses:
                return None
            return and_(*clauses) if isinstance(predicate, And) else or_(*clauses)

        column = getattr(self.model, predicate.field, None) if predicate.field in self._columns(self.model) else None
        if column is None:
            docrud.log.warning(f'{self.model_name} has no column "{predicate.field}", ignoring {predicate}')
            return None

        if isinstance(predicate, Eq):
            return column == self.coerce(predicate.field, predicate.value)
        if isinstance(predicate, In):
            return column.in_([self.coerce(predicate.field, value) for value in predicate.values])
        if isinstance(predicate, Range):
            return and_(*(RANGE_OPERATORS[op](column, self.coerce(predicate.field, value)) for op, value in predicate.bounds))
        if isinstance(predicate, Match):
            # the keyword is escaped, (?i) is understood by the python (sqlite), postgres and mysql regex engines
            pattern = re.escape(predicate.keyword)
            if not predicate.case_sensitive:
                pattern = "(?i)" + pattern
            if not isinstance(column.type, String):
                column = sqlalchemy.cast(column, String)
            return column.regexp_match(pattern)
        raise StoreError(f"Unsupported predicate {predicate}")

    #
    # Population
    #
    def _load_options(self, specs: Iterable[PopulateSpec], model=None, parent=None) -> list:
        """
        Eager load the populated relationships, cfr. https://docs.sqlalchemy.org/en/20/orm/queryguide/relationships.html
        """
        model = model if model is not None else self.model
        options = []
        relationships = self._relationships(model)
        for spec in specs:
            rel = relationships.get(spec.path)
            if rel is None or rel.lazy not in EAGER_LOADABLE:
                # we can't set options for lazy_load 'dynamic'/'raise'/'noload' relationships
                continue
            rel_attr = getattr(model, spec.path)
            option = parent.joinedload(rel_attr) if parent is not None else joinedload(rel_attr)
            options.append(option)
            options += self._load_options(spec.populate, rel.mapper.class_, option)
        return options

    def check_populate(self, specs: Sequence[PopulateSpec], model=None) -> None:
        model = model if model is not None else self.model
        relationships = self._relationships(model)
        for spec in specs:
            rel = relationships.get(spec.path)
            if rel is None:
                raise SystemValidationError(f'Cannot populate "{spec.path}": {model.__name__} has no such relationship')
            self.check_populate(spec.populate, rel.mapper.class_)

    def to_document(self, instance, fields: Sequence[str] = (), populate: Sequence[PopulateSpec] = (), depth: int = 0) -> Document:
        """
        Serialize an instance
        :param instance: sqla model instance
        :param fields: projection, the id is always included. Empty for all columns
        :param populate: relationships to embed
        :param depth: populate nesting level
        :return: document
        """
        model = type(instance)
        id_field = self._id_field(model)
        selected = set(fields)
        result = {}
        for key in self._columns(model):
            if selected and key != id_field and key not in selected:
                continue
            result[key] = getattr(instance, key)

        if populate and depth >= get_int_config("MAX_POPULATE_DEPTH"):
            docrud.log.warning(f"Populate depth limit reached for {model.__name__}")
            return result

        relationships = self._relationships(model)
        for spec in populate:
            rel = relationships.get(spec.path)
            if rel is None or (selected and spec.path not in selected):
                continue
            related = getattr(instance, spec.path)
            if rel.uselist:
                result[spec.path] = [self.to_document(item, spec.select, spec.populate, depth + 1) for item in related]
            elif related is None:
                result[spec.path] = None
            else:
                result[spec.path] = self.to_document(related, spec.select, spec.populate, depth + 1)
        return result

    #
    # Store primitives
    #
    def _query(self, query: Optional[QuerySpec] = None):
        result = self.session.query(self.model)
        if query is not None and query.populate:
            options = self._load_options(query.populate)
            if options:
                result = result.options(*options)
        return result

    def _get_instance(self, doc_id: Any, query: Optional[QuerySpec] = None):
        id_attr = getattr(self.model, self.id_field)
        return self._query(query).filter(id_attr == self.coerce(self.id_field, doc_id)).first()

    def create(self, data: Document) -> Document:
        instance = self.model(**self._attributes(data))
        try:
            self.session.add(instance)
            self.session.commit()
            return self.to_document(instance)
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise self._store_error(exc)

    def update(self, doc_id: Any, data: Document) -> Optional[Document]:
        try:
            instance = self._get_instance(doc_id)
            if instance is None:
                return None
            for attr_name, attr_val in self._attributes(data).items():
                setattr(instance, attr_name, attr_val)
            self.session.commit()
            return self.to_document(instance)
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise self._store_error(exc)

    def delete(self, doc_id: Any) -> Optional[Document]:
        try:
            instance = self._get_instance(doc_id)
            if instance is None:
                return None
            result = self.to_document(instance)
            self.session.delete(instance)
            self.session.commit()
            return result
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise self._store_error(exc)

    def find(self, query: QuerySpec) -> List[Document]:
        try:
            result = self._query(query)
            expression = self.where(query.predicate)
            if expression is not None:
                result = result.filter(expression)
            instances = result.order_by(getattr(self.model, self.id_field)).all()
            return [self.to_document(instance, query.fields, query.populate) for instance in instances]
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise self._store_error(exc)

    def find_by_id(self, doc_id: Any, query: Optional[QuerySpec] = None) -> Optional[Document]:
        query = query if query is not None else QuerySpec()
        try:
            instance = self._get_instance(doc_id, query)
            if instance is None:
                return None
            return self.to_document(instance, query.fields, query.populate)
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise self._store_error(exc)

    def describe_fields(self) -> Dict[str, str]:
        result = {}
        for key, column in self._columns(self.model).items():
            try:
                python_type = column.type.python_type
            except NotImplementedError:
                python_type = str
            result[key] = SWAGGER_TYPES.get(python_type, "string")
        return result

    def check_field(self, field_name: str) -> None:
        if field_name not in self._columns(self.model):
            raise SystemValidationError(f'{self.model_name} has no column "{field_name}"')

    def find_one(self, field_name: str, value: Any) -> Optional[Document]:
        if field_name not in self._columns(self.model):
            raise StoreError(f'{self.model_name} has no column "{field_name}"')
        result = self.find(QuerySpec(predicate=Eq(field_name, value)))
        return result[0] if result else None

    def find_in(self, field_name: str, values: Sequence[Any]) -> List[Document]:
        if field_name not in self._columns(self.model):
            raise StoreError(f'{self.model_name} has no column "{field_name}"')
        return self.find(QuerySpec(predicate=In(field_name, tuple(values))))

    def insert_many(self, docs: Sequence[Document]) -> List[Document]:
        instances = [self.model(**self._attributes(doc)) for doc in docs]
        try:
            self.session.add_all(instances)
            self.session.commit()
            return [self.to_document(instance) for instance in instances]
        except sqlalchemy.exc.SQLAlchemyError as exc:
            raise self._store_error(exc)

    def has_unique_constraint(self, field_name: str) -> bool:
        column = self._columns(self.model).get(field_name)
        if column is None:
            return False
        if column.unique or column.primary_key:
            return True
        table = column.table
        for constraint in table.constraints:
            if isinstance(constraint, sqlalchemy.UniqueConstraint) and list(constraint.columns) == [column]:
                return True
        return any(index.unique and list(index.columns) == [column] for index in table.indexes)
