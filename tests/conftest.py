"""Pytest configuration and shared fixtures."""

import copy
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pydantic import BaseModel

from config import Settings
from database import CONFLICT_MESSAGES, PRODUCTS, UNIQUE_FIELDS, USERS, UpdateCounts
from errors import ConflictError
from main import create_app


class FakeStore:
    """
    In-memory stand-in for MongoStore.

    Mirrors the gateway contract, including the unique indexes on
    Product.name and User.email.
    """

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[ObjectId, Dict[str, Any]]] = {PRODUCTS: {}, USERS: {}}
        self.connected = False
        self.connect_calls = 0

    def connect(self):
        self.connect_calls += 1
        self.connected = True
        return self

    def close(self) -> None:
        self.connected = False

    def ping(self) -> bool:
        return self.connected

    def count(self, collection: str) -> int:
        return len(self.collections[collection])

    def _check_unique(self, collection: str, fields: Dict[str, Any], exclude: Optional[ObjectId] = None) -> None:
        field = UNIQUE_FIELDS[collection]
        if field not in fields:
            return
        for doc_id, doc in self.collections[collection].items():
            if doc_id != exclude and doc.get(field) == fields[field]:
                raise ConflictError(CONFLICT_MESSAGES[collection])

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(d) for d in self.collections[collection].values()]

    def find_by_id(self, collection: str, doc_id: ObjectId) -> Optional[Dict[str, Any]]:
        doc = self.collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def find_by_field(self, collection: str, field: str, value: Any) -> Optional[Dict[str, Any]]:
        for doc in self.collections[collection].values():
            if doc.get(field) == value:
                return copy.deepcopy(doc)
        return None

    def insert(self, collection: str, data):
        doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        self._check_unique(collection, doc)
        doc_id = doc.setdefault("_id", ObjectId())
        self.collections[collection][doc_id] = doc
        return doc_id, copy.deepcopy(doc)

    def update_partial(self, collection: str, doc_id: ObjectId, fields: Dict[str, Any]) -> UpdateCounts:
        doc = self.collections[collection].get(doc_id)
        if doc is None:
            return UpdateCounts(matched=0, modified=0)
        self._check_unique(collection, fields, exclude=doc_id)
        changed = any(doc.get(k) != v for k, v in fields.items())
        doc.update(copy.deepcopy(fields))
        return UpdateCounts(matched=1, modified=1 if changed else 0)

    def delete(self, collection: str, doc_id: ObjectId) -> bool:
        return self.collections[collection].pop(doc_id, None) is not None


@pytest.fixture
def settings():
    return Settings(jwt_secret="test-secret", database_name="shop_test")


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def client(settings, store):
    app = create_app(settings, store=store)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def widget():
    return {"name": "Widget", "description": "A widget", "category": "Tools", "price": 5.00}


@pytest.fixture
def new_user():
    return {
        "fullName": "Ada Lovelace",
        "email": "ada@example.com",
        "password": "engine-123",
        "role": "customer",
    }


@pytest.fixture
def registered(client, new_user):
    """Register ``new_user``; the client keeps the auth cookie."""
    response = client.post("/api/user/register", json=new_user)
    assert response.status_code == 200
    return response.json()["addedUser"]
