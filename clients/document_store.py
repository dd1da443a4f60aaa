"""
Document storage for ledger entities.

Entities are stored whole as JSON documents, grouped by collection and keyed
by UUID. Services load a full document, mutate it and write it back
(last writer wins per entity). The two places that must not race, document
numbering and receipt issuance, take a named lock inside a transaction.

Documents handed to put() must already be JSON-compatible: always pass
``model.model_dump(mode="json")``.
"""

import copy
import threading
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID


def to_json_value(value: Any) -> Any:
    """Normalize a query value to the form it has inside a stored document."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class DocumentStore:
    """
    Storage interface used by every service.

    Implementations must give read-your-writes consistency inside a
    transaction, preserve insertion order in find()/all(), and make put()
    all-or-nothing.
    """

    def get(self, collection: str, doc_id: UUID) -> dict[str, Any] | None:
        """Document by id, or None."""
        raise NotImplementedError

    def put(self, collection: str, doc_id: UUID, document: dict[str, Any]) -> None:
        """Insert or fully replace a document."""
        raise NotImplementedError

    def find(self, collection: str, **criteria: Any) -> list[dict[str, Any]]:
        """Documents whose top-level fields equal every criterion, in insertion order."""
        raise NotImplementedError

    def all(self, collection: str) -> list[dict[str, Any]]:
        """Every document in a collection, in insertion order."""
        return self.find(collection)

    def find_one(self, collection: str, **criteria: Any) -> dict[str, Any] | None:
        """First matching document, or None."""
        results = self.find(collection, **criteria)
        return results[0] if results else None

    def transaction(self):
        """Context manager grouping writes so they commit together or not at all."""
        raise NotImplementedError

    def lock(self, key: str):
        """Context manager giving mutual exclusion on a named key."""
        raise NotImplementedError


class MemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-process store.

    Transactions hold a re-entrant store-wide lock and snapshot the data on
    entry; an exception inside the outermost transaction restores the
    snapshot. Transactions are fully serialized, so a named lock is simply a
    transaction.
    """

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._mutex = threading.RLock()
        self._depth = 0

    def _collection(self, name: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def get(self, collection: str, doc_id: UUID) -> dict[str, Any] | None:
        with self._mutex:
            document = self._collection(collection).get(str(doc_id))
            return copy.deepcopy(document) if document is not None else None

    def put(self, collection: str, doc_id: UUID, document: dict[str, Any]) -> None:
        stored = copy.deepcopy(document)
        with self._mutex:
            self._collection(collection)[str(doc_id)] = stored

    def find(self, collection: str, **criteria: Any) -> list[dict[str, Any]]:
        wanted = {key: to_json_value(value) for key, value in criteria.items()}
        with self._mutex:
            return [
                copy.deepcopy(document)
                for document in self._collection(collection).values()
                if all(document.get(key) == value for key, value in wanted.items())
            ]

    @contextmanager
    def transaction(self):
        with self._mutex:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = copy.deepcopy(self._collections)
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._collections = snapshot
                raise
            finally:
                self._depth = 0

    @contextmanager
    def lock(self, key: str):
        with self.transaction():
            yield
