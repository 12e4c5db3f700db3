"""MongoDB helpers for the application."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from bson import ObjectId
from flask import current_app
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .config import ConfigError, get_db_name, get_mongo_uri

logger = logging.getLogger(__name__)

LESSON_COLLECTION = "lesson"
ORDER_COLLECTION = "order"

PERMITTED_COLLECTIONS = frozenset({LESSON_COLLECTION, ORDER_COLLECTION})


class StoreNotReadyError(RuntimeError):
    """Raised when a request needs the database before the connection is up."""


class UnknownCollectionError(LookupError):
    """Raised for collection names outside ``PERMITTED_COLLECTIONS``."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown collection '{name}'.")
        self.name = name


def _ensure_lesson_indexes(collection: Collection) -> None:
    collection.create_index([("id", ASCENDING)], name="lesson_id_idx")


def _ensure_order_indexes(collection: Collection) -> None:
    # One cart line per lessonID; checkout orders carry no lessonID.
    collection.create_index(
        [("lessonID", ASCENDING)],
        name="order_lesson_id_unique",
        unique=True,
        sparse=True,
    )


_INDEX_BOOTSTRAP: Dict[str, Callable[[Collection], None]] = {
    LESSON_COLLECTION: _ensure_lesson_indexes,
    ORDER_COLLECTION: _ensure_order_indexes,
}


class MongoStore:
    """Process-wide holder of the database handle.

    The store starts out not ready. ``connect`` (or ``connect_async``) opens
    the client and verifies it with a ping; ``bind`` attaches an existing
    database directly. Until one of them succeeds, ``collection`` raises
    ``StoreNotReadyError``.
    """

    def __init__(
        self,
        uri_factory: Callable[[], str] = get_mongo_uri,
        db_name_factory: Callable[[], str] = get_db_name,
        client_factory: Callable[..., Any] = MongoClient,
    ) -> None:
        self._uri_factory = uri_factory
        self._db_name_factory = db_name_factory
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._db: Optional[Database] = None
        self._indexes_created: set = set()
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._db is not None

    def bind(self, database: Database) -> None:
        with self._lock:
            self._db = database
            self._indexes_created = set()

    def connect(self) -> bool:
        """Open the client, ping the server and bind the configured database."""

        try:
            uri = self._uri_factory()
            db_name = self._db_name_factory()
        except ConfigError:
            logger.exception("Missing configuration for MongoDB")
            return False

        client = None
        try:
            client = self._client_factory(uri, serverSelectionTimeoutMS=5000)
            client.admin.command("ping")
        except PyMongoError:
            logger.exception("MongoDB connection error")
            if client is not None:
                client.close()
            return False

        self._client = client
        self.bind(client[db_name])
        logger.info("Connected to MongoDB database %s", db_name)
        return True

    def connect_async(self) -> threading.Thread:
        thread = threading.Thread(
            target=self.connect, name="mongo-connect", daemon=True
        )
        thread.start()
        return thread

    def get_db(self) -> Database:
        db = self._db
        if db is None:
            raise StoreNotReadyError("Database not connected")
        return db

    def collection(self, name: str) -> Collection:
        """Return a permitted collection, creating its indexes on first use."""

        if name not in PERMITTED_COLLECTIONS:
            raise UnknownCollectionError(name)

        collection = self.get_db()[name]
        if name not in self._indexes_created:
            _INDEX_BOOTSTRAP[name](collection)
            self._indexes_created.add(name)
        return collection

    def close(self) -> None:
        with self._lock:
            if self._client is not None:
                self._client.close()
            self._client = None
            self._db = None


def init_store(app, store: MongoStore) -> None:
    app.extensions["store"] = store


def current_store() -> MongoStore:
    """Return the store injected into the running Flask app."""

    return current_app.extensions["store"]


def serialize_document(document):
    """Convert a MongoDB document into a JSON-serialisable dict."""

    if document is None:
        return None

    serialized: Dict[str, Any] = {}
    for key, value in document.items():
        if isinstance(value, ObjectId):
            value = str(value)
        serialized[key] = value
    return serialized


__all__ = [
    "LESSON_COLLECTION",
    "ORDER_COLLECTION",
    "PERMITTED_COLLECTIONS",
    "MongoStore",
    "StoreNotReadyError",
    "UnknownCollectionError",
    "current_store",
    "init_store",
    "serialize_document",
]
