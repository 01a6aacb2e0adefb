import logging
from contextlib import asynccontextmanager, contextmanager

import firebase_admin
from fastapi import FastAPI
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from config import settings
from store import DocumentExists, DocumentStore, MemoryStore, StoreUnavailable
from services.user_service import ensure_admin

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors():
    try:
        yield
    except (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded) as e:
        logger.error(f"Firestore unreachable: {str(e)}")
        raise StoreUnavailable(str(e)) from e


class FirestoreStore(DocumentStore):
    """DocumentStore backed by a Firestore client.

    Conditional updates run inside a Firestore transaction, so a concurrent
    write to the same document makes Firestore retry the read-compare-write.
    """

    def __init__(self, db):
        self._db = db

    def _ref(self, collection, doc_id):
        return self._db.collection(collection).document(doc_id)

    def get(self, collection, doc_id):
        with _translate_errors():
            snapshot = self._ref(collection, doc_id).get()
        if not snapshot.exists:
            return None
        return {**snapshot.to_dict(), "id": snapshot.id}

    def create(self, collection, doc_id, data):
        stored = {k: v for k, v in data.items() if k != "id"}
        with _translate_errors():
            try:
                self._ref(collection, doc_id).create(stored)
            except google_exceptions.AlreadyExists as e:
                raise DocumentExists(f"{collection}/{doc_id}") from e
        return {**stored, "id": doc_id}

    def update_if(self, collection, doc_id, expected, changes, increments=None):
        ref = self._ref(collection, doc_id)

        @firestore.transactional
        def apply(transaction):
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return None
            current = snapshot.to_dict()
            if any(current.get(field) != value for field, value in expected.items()):
                return None
            updates = dict(changes)
            for field, amount in (increments or {}).items():
                updates[field] = (current.get(field) or 0) + amount
            transaction.update(ref, updates)
            current.update(updates)
            return {**current, "id": snapshot.id}

        with _translate_errors():
            return apply(self._db.transaction())

    def delete(self, collection, doc_id):
        with _translate_errors():
            self._ref(collection, doc_id).delete()

    def _query(self, collection, filters):
        query = self._db.collection(collection)
        for field, value in (filters or {}).items():
            if isinstance(value, (list, tuple)):
                query = query.where(filter=FieldFilter(field, "in", list(value)))
            else:
                query = query.where(filter=FieldFilter(field, "==", value))
        return query

    def find(self, collection, filters=None, order_by=None, descending=False, limit=None):
        query = self._query(collection, filters)
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit:
            query = query.limit(limit)
        with _translate_errors():
            return [{**snapshot.to_dict(), "id": snapshot.id} for snapshot in query.stream()]

    def count(self, collection, filters=None):
        with _translate_errors():
            results = self._query(collection, filters).count().get()
        return int(results[0][0].value)

    def close(self):
        self._db.close()


def create_store():
    if settings.STORE_BACKEND == "memory":
        logger.info("Using in-memory document store")
        return MemoryStore(), None

    cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS)
    options = {'databaseURL': settings.DATABASE_URL} if settings.DATABASE_URL else None
    firebase_app = firebase_admin.initialize_app(cred, options)
    db = firestore.client(app=firebase_app, database_id=settings.FIRESTORE_DATABASE)
    logger.info("Firebase Admin SDK initialized successfully.")
    return FirestoreStore(db), firebase_app


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup ---
    store, firebase_app = create_store()
    app.state.store = store
    try:
        await ensure_admin(store)
    except DocumentExists:
        logger.warning("Admin bootstrap skipped: email or phone already registered")
    yield

    # --- Shutdown ---
    try:
        logger.info("Closing document store...")
        store.close()
        if firebase_app is not None:
            firebase_admin.delete_app(firebase_app)
            logger.info("Firebase Admin SDK app deleted successfully.")
    except Exception as e:
        logger.error(f"Error shutting down document store: {e}")
