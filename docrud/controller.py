# -*- coding: utf-8 -*-
#
# The resource controller implements the five docrud operations of an exposed resource:
# create-or-update, delete, list, get-by-id and bulk-insert.
#
# Every entry point returns an Envelope: errors are caught here and converted,
# the routes never see an exception raised by the store.
#
# pylint: disable=broad-except,logging-format-interpolation
from http import HTTPStatus
from typing import Any, Iterable, List, Mapping, Optional

import docrud
from .config import is_debug
from .errors import DocrudError, IntegrityViolation, NotFoundError, StoreError, ValidationError
from .query import build_get_by_id_query, build_list_query
from .response import Envelope
from .settings import Settings
from .store import Document, DocumentStore
from .uniqueness import UniquenessEnforcer, is_empty
from .util import pluralize

# status of the envelope when the store fails, per operation
STORE_ERROR_STATUS = {
    "add_or_update": HTTPStatus.INTERNAL_SERVER_ERROR.value,
    "remove": HTTPStatus.BAD_REQUEST.value,
    "get_all": HTTPStatus.INTERNAL_SERVER_ERROR.value,
    "get_by_id": HTTPStatus.NOT_FOUND.value,
    "insert_many": HTTPStatus.INTERNAL_SERVER_ERROR.value,
}

EMPTY_BATCH_MESSAGE = "Request body must be a non-empty array of documents"


class ResourceController:
    """
    Orchestrates the query compilation, the uniqueness checks and the store calls of a resource.
    The store and the settings are fixed at registration, the controller holds no request state.
    """

    def __init__(self, store: DocumentStore, settings: Settings, resource: Optional[str] = None) -> None:
        """
        :param store: document store of the resource
        :param settings: resolved resource settings
        :param resource: namespace of the uniqueness locks, defaults to the model name
        """
        self.store = store
        self.settings = settings
        self.model_name = store.model_name
        self.enforcer = UniquenessEnforcer(store, settings.primary_key, resource)

    def _failure_message(self, operation: str, exc: Exception) -> str:
        fallbacks = {
            "add_or_update": f"Failed to process {self.model_name}",
            "remove": f"Failed to delete {self.model_name}",
            "get_all": f"Failed to fetch {pluralize(self.model_name)}",
            "get_by_id": f"Failed to fetch {self.model_name}",
            "insert_many": f"Failed to insert {pluralize(self.model_name)}",
        }
        if is_debug():
            return str(exc) or fallbacks[operation]
        return fallbacks[operation]

    def _failure(self, operation: str, exc: Exception) -> Envelope:
        """
        Convert an exception raised by an operation to an envelope
        """
        if isinstance(exc, StoreError):
            return Envelope.failure(STORE_ERROR_STATUS[operation], self._failure_message(operation, exc))
        if isinstance(exc, DocrudError):
            return Envelope.failure(exc.status_code, exc.message, exc.errors)
        docrud.log.exception(exc)
        return Envelope.failure(STORE_ERROR_STATUS[operation], self._failure_message(operation, exc))

    def add_or_update(self, body: Any) -> Envelope:
        """
        Create a document, or update it when the body carries the document identifier

        :param body: document payload
        :return: 201 created / 200 updated envelope
        """
        try:
            if not isinstance(body, Mapping):
                raise ValidationError(f"Request body must be a {self.model_name} document")
            rest = dict(body)
            doc_id = rest.pop(self.store.id_field, None)
            if is_empty(doc_id):
                doc_id = None

            with self.enforcer.guard([rest]):
                self.enforcer.check_write(rest, doc_id)
                try:
                    if doc_id is not None:
                        result = self.store.update(doc_id, rest)
                    else:
                        result = self.store.create(rest)
                except IntegrityViolation:
                    # the unique constraint of the store caught a concurrent write
                    self.enforcer.check_write(rest, doc_id)
                    raise

            if doc_id is None:
                return Envelope.ok(f"{self.model_name} created successfully", result, HTTPStatus.CREATED.value)
            if result is None:
                raise NotFoundError(f"{self.model_name} not found")
            return Envelope.ok(f"{self.model_name} updated successfully", result)
        except Exception as exc:
            return self._failure("add_or_update", exc)

    def remove(self, doc_id: Any) -> Envelope:
        """
        Delete a document, deleting a missing document is not an error: data will be null

        :param doc_id: document identifier
        :return: envelope with the deleted document
        """
        try:
            result = self.store.delete(doc_id)
            return Envelope.ok(f"{self.model_name} deleted successfully", result)
        except Exception as exc:
            return self._failure("remove", exc)

    def get_all(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        search: Optional[str] = None,
        search_fields: Optional[Iterable[str]] = None,
        case_sensitive: bool = False,
    ) -> Envelope:
        """
        List the documents matching the allowed filters and the search keyword

        :param filters: parsed filter arguments
        :param search: search keyword
        :param search_fields: fields to search, restricted to the allowed search fields
        :param case_sensitive: case sensitive search
        :return: envelope with the projected and populated documents
        """
        try:
            query = build_list_query(self.settings, filters, search, case_sensitive, search_fields)
            result = self.store.find(query)
            return Envelope.ok(f"{pluralize(self.model_name)} fetched successfully", result)
        except Exception as exc:
            return self._failure("get_all", exc)

    def get_by_id(self, doc_id: Any) -> Envelope:
        try:
            result = self.store.find_by_id(doc_id, build_get_by_id_query(self.settings))
            if result is None:
                raise NotFoundError(f"{self.model_name} not found")
            return Envelope.ok(f"{self.model_name} fetched successfully", result)
        except Exception as exc:
            return self._failure("get_by_id", exc)

    def insert_many(self, docs: Any) -> Envelope:
        """
        Insert a batch of documents: either all documents are inserted or none

        :param docs: list of document payloads
        :return: 201 envelope with the inserted documents
        """
        try:
            if not isinstance(docs, list) or not docs or not all(isinstance(doc, Mapping) for doc in docs):
                raise ValidationError(EMPTY_BATCH_MESSAGE)
            batch: List[Document] = [dict(doc) for doc in docs]

            with self.enforcer.guard(batch):
                self.enforcer.check_batch(batch)
                try:
                    result = self.store.insert_many(batch)
                except IntegrityViolation:
                    self.enforcer.check_batch(batch)
                    raise

            return Envelope.ok(f"{len(batch)} {self.model_name}(s) created successfully", result, HTTPStatus.CREATED.value)
        except Exception as exc:
            return self._failure("insert_many", exc)
