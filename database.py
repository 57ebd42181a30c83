
# Example usage:
# from database import open_store, StoreStatus
#
# comments = open_store("comments")
#
# # Create a comment; the store assigns _key and _rev
# result = comments.save({"text": "hi"})
# key = result.document["_key"]
#
# # Fetch, replace and patch it (pass the last seen _rev to detect conflicts)
# comments.get(key)
# comments.replace(key, {"text": "hello"}, expected_rev=result.document["_rev"])
# comments.update(key, {"text": "edited"})
#
# # Delete it
# comments.remove(key)


import logging
import os
import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from dotenv import load_dotenv
from pymongo import MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

# Fields owned by the store; never written from client payloads
RESERVED_FIELDS = ("_id", "_key", "_rev", "_oldRev")

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]
    logger.info("MongoDB client created for database %s", database_name)


class DatabaseUnavailable(RuntimeError):
    """Raised when DATABASE_URL / DATABASE_NAME are not configured."""


class StoreStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    DUPLICATE_KEY = "duplicate_key"
    CONFLICT = "conflict"


@dataclass
class StoreResult:
    """Outcome of a single store call.

    ``document`` holds the stored record for reads and the operation
    metadata (``_id``, ``_key``, ``_rev`` and ``_oldRev`` where known) for
    writes. It is None unless ``status`` is OK.
    """

    status: StoreStatus
    document: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status is StoreStatus.OK


def new_revision() -> str:
    return secrets.token_hex(8)


def strip_reserved(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in RESERVED_FIELDS}


def to_record(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Expose the MongoDB _id as the document key."""
    record = dict(doc)
    record["_key"] = record["_id"]
    return record


def _meta(key: str, rev: str, old_rev: Optional[str] = None) -> Dict[str, Any]:
    meta = {"_id": key, "_key": key, "_rev": rev}
    if old_rev is not None:
        meta["_oldRev"] = old_rev
    return meta


class DocumentStore:
    """Single-collection access with typed outcomes.

    Every write stamps a fresh ``_rev``. ``replace`` and ``update`` take an
    optional ``expected_rev``; when given, the write only applies if the
    stored revision still matches, otherwise the result is CONFLICT.

    Errors other than a duplicate key are not caught here.
    """

    def __init__(self, collection: Collection):
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    def all(self) -> List[Dict[str, Any]]:
        return [to_record(doc) for doc in self.collection.find({})]

    def save(self, data: Dict[str, Any]) -> StoreResult:
        key = data.get("_key") or str(ObjectId())
        rev = new_revision()
        doc = strip_reserved(data)
        doc["_id"] = key
        doc["_rev"] = rev
        try:
            self.collection.insert_one(doc)
        except DuplicateKeyError:
            return StoreResult(StoreStatus.DUPLICATE_KEY)
        return StoreResult(StoreStatus.OK, _meta(key, rev))

    def get(self, key: str) -> StoreResult:
        doc = self.collection.find_one({"_id": key})
        if doc is None:
            return StoreResult(StoreStatus.NOT_FOUND)
        return StoreResult(StoreStatus.OK, to_record(doc))

    def replace(self, key: str, data: Dict[str, Any], expected_rev: Optional[str] = None) -> StoreResult:
        rev = new_revision()
        doc = strip_reserved(data)
        doc["_rev"] = rev
        previous = self.collection.find_one_and_replace(
            self._filter(key, expected_rev),
            doc,
            projection={"_rev": True},
            return_document=ReturnDocument.BEFORE,
        )
        if previous is None:
            return StoreResult(self._miss_status(key, expected_rev))
        return StoreResult(StoreStatus.OK, _meta(key, rev, previous.get("_rev")))

    def update(self, key: str, patch: Dict[str, Any], expected_rev: Optional[str] = None) -> StoreResult:
        """Shallow merge: top-level fields in ``patch`` overwrite stored ones."""
        rev = new_revision()
        changes = strip_reserved(patch)
        changes["_rev"] = rev
        previous = self.collection.find_one_and_update(
            self._filter(key, expected_rev),
            {"$set": changes},
            projection={"_rev": True},
            return_document=ReturnDocument.BEFORE,
        )
        if previous is None:
            return StoreResult(self._miss_status(key, expected_rev))
        return StoreResult(StoreStatus.OK, _meta(key, rev, previous.get("_rev")))

    def remove(self, key: str) -> StoreResult:
        result = self.collection.delete_one({"_id": key})
        if result.deleted_count == 0:
            return StoreResult(StoreStatus.NOT_FOUND)
        return StoreResult(StoreStatus.OK, {"_id": key, "_key": key})

    def _filter(self, key: str, expected_rev: Optional[str]) -> Dict[str, Any]:
        filter_dict = {"_id": key}
        if expected_rev is not None:
            filter_dict["_rev"] = expected_rev
        return filter_dict

    def _miss_status(self, key: str, expected_rev: Optional[str]) -> StoreStatus:
        # A conditional write that matched nothing is a conflict only if the key exists
        if expected_rev is not None and self.collection.count_documents({"_id": key}, limit=1):
            return StoreStatus.CONFLICT
        return StoreStatus.NOT_FOUND


def open_store(collection_name: str) -> DocumentStore:
    """Return a DocumentStore for the named collection

    Raises:
        DatabaseUnavailable: if the database is not configured
    """
    if db is None:
        raise DatabaseUnavailable("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return DocumentStore(db[collection_name])
