"""
Database Schemas

Each Pydantic model corresponds to a MongoDB collection and declares the
shape and defaults of the documents stored there. Defaults are generated
per document, when the request body is validated.

for_client / from_client convert between the stored record and what the
API sends and receives.
"""

import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PASSWORD_ALPHABET = "abcdefghkmnpqrstuvwxyzABCDEFGHKMNPQRSTUVWXYZ23456789"
PASSWORD_LENGTH = 8

STORE_FIELDS = ("_rev", "_oldRev", "_id", "_key")

# Characters that survive a single URL path segment unescaped
KEY_PATTERN = r"^[A-Za-z0-9_\-:@()+,=;!*']{1,254}$"


def generate_password() -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(PASSWORD_LENGTH))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def for_client(record: Dict[str, Any]) -> Dict[str, Any]:
    """Outgoing transformation: store key becomes ``id``, store metadata is dropped."""
    obj = {k: v for k, v in record.items() if k not in STORE_FIELDS}
    obj["id"] = record.get("_key", record.get("_id"))
    return obj


def from_client(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Incoming transformation: clients may not choose ``id``."""
    return {k: v for k, v in payload.items() if k != "id"}


class Document(BaseModel):
    """
    Fields shared by every collection schema.

    ``_key`` may be sent on create to pick the document key; otherwise the
    store assigns one. It is never part of the stored fields.
    """
    key: Optional[str] = Field(default=None, alias="_key", exclude=True, pattern=KEY_PATTERN)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class Comment(Document):
    """
    Comments collection schema
    Collection: "comments"

    No fields are required; everything sent is stored as sent.
    """
    model_config = ConfigDict(extra="allow")


class User(Document):
    """
    Users collection schema
    Collection: "users"
    """
    username: str = Field(...)
    name: str = Field(...)
    password: str = Field(default_factory=generate_password)
    admin: bool = Field(default=False, description="Stored only; not enforced")
    createdDate: datetime = Field(default_factory=utc_now)
    modifiedDate: datetime = Field(default_factory=utc_now)

    @field_validator("password", mode="before")
    @classmethod
    def blank_password_is_generated(cls, v):
        if v is None or v == "":
            return generate_password()
        return v
