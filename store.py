"""Document store used by the services.

Services talk to a ``DocumentStore``: a handful of single-document
operations over named collections. Documents are plain dicts; every dict
handed back carries its document id under ``"id"``.

``update_if`` is the primitive the ride lifecycle relies on: it applies
``changes`` only when every field in ``expected`` currently holds the given
value, as one atomic step. A missing field compares equal to ``None``.
"""
import copy
import threading
from typing import Any, Dict, List, Optional


class DocumentExists(Exception):
    """Raised by ``create`` when the document id is already taken."""


class StoreUnavailable(Exception):
    """Raised when the backing database cannot be reached."""


class DocumentStore:
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def create(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Unconditional partial update. Returns the new document, or None if missing."""
        return self.update_if(collection, doc_id, {}, changes)

    def update_if(
        self,
        collection: str,
        doc_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any],
        increments: Optional[Dict[str, float]] = None,
    ) -> Optional[Dict[str, Any]]:
        """Atomic compare-and-set. Returns the new document, or None when the
        document is missing or does not match ``expected``."""
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Equality query. A list or tuple filter value means "field in values"."""
        raise NotImplementedError

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return len(self.find(collection, filters))

    def close(self) -> None:
        pass


def _matches(document: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    for field, value in filters.items():
        if isinstance(value, (list, tuple)):
            if document.get(field) not in value:
                return False
        elif document.get(field) != value:
            return False
    return True


def _sort_key(value):
    # None sorts first, like Firestore's null ordering
    return (value is not None, value)


class MemoryStore(DocumentStore):
    """In-process store for local development and tests.

    One lock guards every collection, which makes ``update_if`` and
    ``create`` atomic across request threads.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    @staticmethod
    def _out(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {**copy.deepcopy(data), "id": doc_id}

    def get(self, collection, doc_id):
        with self._lock:
            data = self._collection(collection).get(doc_id)
            return None if data is None else self._out(doc_id, data)

    def create(self, collection, doc_id, data):
        with self._lock:
            documents = self._collection(collection)
            if doc_id in documents:
                raise DocumentExists(f"{collection}/{doc_id}")
            stored = {k: copy.deepcopy(v) for k, v in data.items() if k != "id"}
            documents[doc_id] = stored
            return self._out(doc_id, stored)

    def update_if(self, collection, doc_id, expected, changes, increments=None):
        with self._lock:
            current = self._collection(collection).get(doc_id)
            if current is None or not _matches(current, expected):
                return None
            current.update(copy.deepcopy(changes))
            for field, amount in (increments or {}).items():
                current[field] = (current.get(field) or 0) + amount
            return self._out(doc_id, current)

    def delete(self, collection, doc_id):
        with self._lock:
            self._collection(collection).pop(doc_id, None)

    def find(self, collection, filters=None, order_by=None, descending=False, limit=None):
        with self._lock:
            results = [
                self._out(doc_id, data)
                for doc_id, data in self._collection(collection).items()
                if _matches(data, filters or {})
            ]
        if order_by:
            results.sort(key=lambda doc: _sort_key(doc.get(order_by)), reverse=descending)
        if limit:
            results = results[:limit]
        return results
