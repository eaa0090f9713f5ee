"""
Application level primary key uniqueness

The primary key of a resource is a document field (eg. "email") that must be unique,
it is unrelated to the store identifier. The check happens before the write:

- when the store declares a unique constraint on the field, the store is authoritative:
  an integrity violation on write is reported as a conflict (cfr. ResourceController)
- otherwise the check and the write are serialized per (model, value) with an in-process lock.
  Writers in other processes are not serialized.

Values are compared the way the store compares them (cfr. DocumentStore.normalize),
so "30" and 30 are the same value of an integer field.
"""

import threading
from contextlib import contextmanager
from http import HTTPStatus
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import docrud
from .config import get_config
from .errors import ConflictError, ValidationError
from .store import Document, DocumentStore

_registry_lock = threading.Lock()
# (model, value) => [lock, number of users]
_key_locks: Dict[Tuple[str, Any], list] = {}


@contextmanager
def key_locks(keys: Iterable[Tuple[str, Any]]) -> Iterator[None]:
    """
    Hold an in-process lock for each key
    Locks are acquired in a fixed order so concurrent batches can't deadlock
    """
    keys = sorted(set(keys), key=repr)
    with _registry_lock:
        locks = []
        for key in keys:
            entry = _key_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            locks.append(entry[0])
    acquired = []
    try:
        for lock in locks:
            lock.acquire()
            acquired.append(lock)
        yield
    finally:
        for lock in reversed(acquired):
            lock.release()
        with _registry_lock:
            for key in keys:
                entry = _key_locks[key]
                entry[1] -= 1
                if not entry[1]:
                    del _key_locks[key]


def is_empty(value: Any) -> bool:
    return value is None or value == ""


class UniquenessEnforcer:
    """
    Prevent two documents of a resource from sharing a primary key value
    """

    def __init__(self, store: DocumentStore, primary_key: Optional[str] = None, resource: Optional[str] = None) -> None:
        """
        :param store: document store of the resource
        :param primary_key: unique field, nothing is enforced when it's None
        :param resource: lock namespace, defaults to the model name so that every path exposing the model shares the locks
        """
        self.store = store
        self.primary_key = primary_key
        self.resource = resource or store.model_name
        self.store_enforced = bool(primary_key) and store.has_unique_constraint(primary_key)
        if primary_key and not self.store_enforced:
            docrud.log.debug(f"{self.resource}.{primary_key} uniqueness is enforced in-process")

    def value(self, doc: Document) -> Any:
        """
        :return: the normalized primary key value of doc, None if it's empty
        :raises ValidationError: the value is a json object or array
        """
        value = doc.get(self.primary_key)
        if is_empty(value):
            return None
        if isinstance(value, (Mapping, list)):
            raise ValidationError(f"Invalid {self.primary_key} value, expected a scalar")
        return self.store.normalize(self.primary_key, value)

    def values(self, docs: Iterable[Document]) -> List[Any]:
        """
        :return: the non-empty normalized primary key values of the documents
        """
        result = [self.value(doc) for doc in docs if isinstance(doc, dict)]
        return [value for value in result if not is_empty(value)]

    @contextmanager
    def guard(self, docs: Iterable[Document]) -> Iterator[None]:
        """
        Serialize the check-then-write sequence for the primary key values of docs
        """
        values = self.values(docs) if self.primary_key and not self.store_enforced else []
        if not values:
            yield
            return
        with key_locks((self.resource, value) for value in values):
            yield

    def check_write(self, body: Document, doc_id: Any = None) -> None:
        """
        Check a single create (doc_id is None) or update

        :param body: write payload
        :param doc_id: identifier of the updated document
        :raises ConflictError: another document uses the primary key value
        """
        if not self.primary_key:
            return
        value = self.value(body)
        if is_empty(value):
            return
        existing = self.store.find_one(self.primary_key, value)
        if existing is None:
            return
        if doc_id is not None and str(existing.get(self.store.id_field)) == str(doc_id):
            # updating the document that holds the value
            return
        raise ConflictError(f"{self.store.model_name} with this {self.primary_key} already exists")

    def check_batch(self, docs: List[Document]) -> None:
        """
        Check a bulk insert, no document of the batch may be inserted if this fails

        :raises ConflictError: (400) a value is used by an existing document or is repeated in the batch
        """
        if not self.primary_key:
            return
        values = self.values(docs)
        message = f"Duplicate {self.primary_key} values"

        if get_config("REJECT_BATCH_DUPLICATES"):
            seen, repeated = [], []
            for value in values:
                if value in seen and value not in repeated:
                    repeated.append(value)
                seen.append(value)
            if repeated:
                raise ConflictError(message, HTTPStatus.BAD_REQUEST.value, values=repeated)

        if not values:
            return
        existing = self.store.find_in(self.primary_key, values)
        if existing:
            raise ConflictError(message, HTTPStatus.BAD_REQUEST.value, values=[doc.get(self.primary_key) for doc in existing])
