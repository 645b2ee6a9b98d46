"""
Database helpers

The MongoDB client is created by the application lifespan and stored on
``app.state``; route handlers receive the database through ``get_db``.
Collection names are the lowercased schema class names (see schemas.py).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # pymongo hands back naive UTC datetimes, so everything stored is naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def connect(url: str, name: str) -> MongoClient:
    client = MongoClient(url)
    logger.info("Connected to MongoDB database %s", name)
    return client


def get_db(request: Request) -> Database:
    return request.app.state.db


def ensure_indexes(db: Database) -> None:
    db["admin"].create_index("email", unique=True)
    db["user"].create_index("email", unique=True)
    db["user"].create_index("googleId")
    db["user"].create_index("facebookId")
    db["otp"].create_index("expiresAt", expireAfterSeconds=0)
    db["otp"].create_index([("email", ASCENDING), ("type", ASCENDING), ("verified", ASCENDING)])


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = db[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def serialize(value: Any) -> Any:
    """Make a document JSON friendly: ObjectIds become strings, recursively."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def public_view(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Serialized copy of a principal without its password hash."""
    if doc is None:
        return None
    return serialize({k: v for k, v in doc.items() if k != "passwordHash"})
