"""
MongoDB access helpers

The client is created lazily from DATABASE_URL / DATABASE_NAME. Handlers get the
database through the `get_db` dependency so tests can swap it out.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

from config import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db = None

try:
    _client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = _client[DATABASE_NAME]
except Exception as e:
    logger.error(f"Could not configure MongoDB client: {e}")


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["coupon"].create_index([("code", ASCENDING)], unique=True)
    database["coupon"].create_index([("user_id", ASCENDING)], unique=True)
    database["order"].create_index([("stripe_session_id", ASCENDING)], unique=True)


def create_document(database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> ObjectId:
    """Insert a document stamped with created_at/updated_at and return its id."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = datetime.utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    return database[collection_name].insert_one(doc).inserted_id


def oid(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="Invalid id")
    return ObjectId(id_str)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON friendly (ObjectIds become strings)."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, list):
            out[key] = [serialize(v) if isinstance(v, dict) else (str(v) if isinstance(v, ObjectId) else v) for v in value]
        elif isinstance(value, dict):
            out[key] = serialize(value)
        else:
            out[key] = value
    return out
