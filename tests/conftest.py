"""
Shared pytest fixtures.

The HTTP tests never touch MongoDB: the store dependencies are overridden
with InMemoryStore, which honours the same StoreResult contract as
database.DocumentStore.
"""

import os
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import AsyncClient, ASGITransport

# No real database during tests
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_NAME", None)
os.environ["LOG_LEVEL"] = "WARNING"

from database import StoreResult, StoreStatus, new_revision, strip_reserved, to_record  # noqa: E402


class InMemoryStore:
    """Dict-backed stand-in for DocumentStore."""

    def __init__(self, name: str = "comments"):
        self.name = name
        self.docs: Dict[str, Dict[str, Any]] = {}

    def all(self) -> List[Dict[str, Any]]:
        return [to_record(doc) for doc in self.docs.values()]

    def save(self, data: Dict[str, Any]) -> StoreResult:
        key = data.get("_key") or str(ObjectId())
        if key in self.docs:
            return StoreResult(StoreStatus.DUPLICATE_KEY)
        rev = new_revision()
        self.docs[key] = {**strip_reserved(data), "_id": key, "_rev": rev}
        return StoreResult(StoreStatus.OK, {"_id": key, "_key": key, "_rev": rev})

    def get(self, key: str) -> StoreResult:
        if key not in self.docs:
            return StoreResult(StoreStatus.NOT_FOUND)
        return StoreResult(StoreStatus.OK, to_record(self.docs[key]))

    def replace(self, key: str, data: Dict[str, Any], expected_rev: Optional[str] = None) -> StoreResult:
        return self._write(key, expected_rev, lambda old: strip_reserved(data))

    def update(self, key: str, patch: Dict[str, Any], expected_rev: Optional[str] = None) -> StoreResult:
        return self._write(key, expected_rev, lambda old: {**strip_reserved(old), **strip_reserved(patch)})

    def remove(self, key: str) -> StoreResult:
        if self.docs.pop(key, None) is None:
            return StoreResult(StoreStatus.NOT_FOUND)
        return StoreResult(StoreStatus.OK, {"_id": key, "_key": key})

    def _write(self, key, expected_rev, build) -> StoreResult:
        old = self.docs.get(key)
        if old is None:
            return StoreResult(StoreStatus.NOT_FOUND)
        if expected_rev is not None and old.get("_rev") != expected_rev:
            return StoreResult(StoreStatus.CONFLICT)
        rev = new_revision()
        self.docs[key] = {**build(old), "_id": key, "_rev": rev}
        return StoreResult(StoreStatus.OK, {"_id": key, "_key": key, "_rev": rev, "_oldRev": old.get("_rev")})


@pytest.fixture
def comments_store():
    return InMemoryStore("comments")


@pytest.fixture
def users_store():
    return InMemoryStore("users")


@pytest.fixture
def mock_collection():
    """
    A MagicMock standing in for a pymongo Collection.

    Usage:
        mock_collection.find_one.return_value = {"_id": "abc", "_rev": "1"}
        result = DocumentStore(mock_collection).get("abc")
    """
    collection = MagicMock()
    collection.name = "comments"
    return collection


@pytest_asyncio.fixture
async def test_client(comments_store, users_store):
    """
    HTTPX AsyncClient wired to the FastAPI app with in-memory stores.

    Usage:
        async def test_list(test_client):
            response = await test_client.get("/comments")
            assert response.status_code == 200
    """
    import main

    main.app.dependency_overrides[main.get_comments_store] = lambda: comments_store
    main.app.dependency_overrides[main.get_users_store] = lambda: users_store
    transport = ASGITransport(app=main.app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    main.app.dependency_overrides.clear()
