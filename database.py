"""MongoDB gateway for the Product and User collections."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import ConflictError, InvalidIdError, StoreConnectionError, StoreError

logger = logging.getLogger(__name__)

PRODUCTS = "Product"
USERS = "User"

# Enforced by unique indexes created on connect
UNIQUE_FIELDS = {
    PRODUCTS: "name",
    USERS: "email",
}

CONFLICT_MESSAGES = {
    PRODUCTS: "Product already exists",
    USERS: "There is already a user with this email",
}


class UpdateCounts(NamedTuple):
    matched: int
    modified: int


def parse_id(value: str) -> ObjectId:
    """Turn a request-supplied string into an ObjectId or raise InvalidIdError."""
    if not isinstance(value, str):
        raise InvalidIdError(str(value))
    try:
        return ObjectId(value)
    except InvalidId:
        raise InvalidIdError(value) from None


def serialize_document(doc: Dict[str, Any], hidden: Iterable[str] = ()) -> Dict[str, Any]:
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    for name in hidden:
        data.pop(name, None)
    return data


def _as_dict(data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


@contextmanager
def _translate_errors(collection: str, action: str):
    try:
        yield
    except DuplicateKeyError as exc:
        logger.info("Duplicate key on %s %s: %s", action, collection, exc)
        raise ConflictError(CONFLICT_MESSAGES.get(collection)) from exc
    except PyMongoError as exc:
        logger.error("Database error on %s %s: %s", action, collection, exc)
        raise StoreError() from exc


class MongoStore:
    """
    Single logical handle on the document store.

    The client is created on the first ``connect()`` and reused afterwards;
    pymongo pools connections internally.
    """

    def __init__(self, url: str, name: str, client_factory=MongoClient, timeout_ms: int = 5000):
        self.url = url
        self.name = name
        self._client_factory = client_factory
        self._timeout_ms = timeout_ms
        self._client = None
        self._db = None

    def connect(self):
        if self._db is not None:
            return self._db
        client = None
        try:
            client = self._client_factory(self.url, serverSelectionTimeoutMS=self._timeout_ms)
            client.admin.command("ping")
            db = client[self.name]
            for collection, field in UNIQUE_FIELDS.items():
                db[collection].create_index(field, unique=True)
        except PyMongoError as exc:
            logger.error("Could not connect to database %s: %s", self.name, exc)
            if client is not None:
                client.close()
            raise StoreConnectionError() from exc
        self._client = client
        self._db = db
        logger.info("Connected to database %s", self.name)
        return db

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._db = None

    def ping(self) -> bool:
        try:
            self.connect()
            self._client.admin.command("ping")
        except (StoreError, PyMongoError) as exc:
            logger.warning("Database ping failed: %s", exc)
            return False
        return True

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        db = self.connect()
        with _translate_errors(collection, "list"):
            docs = list(db[collection].find())
        logger.debug("Got %d documents from %s", len(docs), collection)
        return docs

    def find_by_id(self, collection: str, doc_id: ObjectId) -> Optional[Dict[str, Any]]:
        db = self.connect()
        with _translate_errors(collection, "find"):
            doc = db[collection].find_one({"_id": doc_id})
        logger.debug("Got %s by id %s", collection, doc_id)
        return doc

    def find_by_field(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        db = self.connect()
        with _translate_errors(collection, "find"):
            doc = db[collection].find_one({field: value})
        logger.debug("Got %s by %s", collection, field)
        return doc

    def insert(
        self, collection: str, data: Union[BaseModel, Dict[str, Any]]
    ) -> Tuple[ObjectId, Dict[str, Any]]:
        db = self.connect()
        doc = _as_dict(data)
        with _translate_errors(collection, "insert"):
            result = db[collection].insert_one(doc)
            stored = db[collection].find_one({"_id": result.inserted_id})
        logger.debug("Inserted %s %s", collection, result.inserted_id)
        return result.inserted_id, stored

    def update_partial(self, collection: str, doc_id: ObjectId, fields: Dict[str, Any]) -> UpdateCounts:
        db = self.connect()
        with _translate_errors(collection, "update"):
            result = db[collection].update_one({"_id": doc_id}, {"$set": fields})
        logger.debug(
            "Updated %s %s (%d matched, %d modified)",
            collection, doc_id, result.matched_count, result.modified_count,
        )
        return UpdateCounts(matched=result.matched_count, modified=result.modified_count)

    def delete(self, collection: str, doc_id: ObjectId) -> bool:
        db = self.connect()
        with _translate_errors(collection, "delete"):
            result = db[collection].delete_one({"_id": doc_id})
        logger.debug("Deleted %s %s", collection, doc_id)
        return result.deleted_count == 1


def get_store(request: Request) -> MongoStore:
    return request.app.state.store
