"""
MongoDB access for the billing API.

``db`` is None when DATABASE_URL / DATABASE_NAME are not configured; the
helpers then raise instead of silently dropping writes.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import MongoClient

from exceptions import DatabaseConnectionError
from settings import load_settings

_settings = load_settings()

_client: Optional[MongoClient] = None
db = None

if _settings.database.url and _settings.database.name:
    _client = MongoClient(_settings.database.url)
    db = _client[_settings.database.name]


def _require_db():
    if db is None:
        raise DatabaseConnectionError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with createdAt/updatedAt stamps and return its id."""
    database = _require_db()
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True, exclude_none=True)
    else:
        data_dict = dict(data)
    data_dict.pop("id", None)

    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List] = None,
) -> List[Dict[str, Any]]:
    database = _require_db()
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def update_document(collection_name: str, filter_dict: Dict[str, Any], changes: Dict[str, Any]) -> int:
    """``$set`` the changes plus a fresh updatedAt; returns the matched count."""
    database = _require_db()
    changes = dict(changes)
    changes["updatedAt"] = utcnow()
    result = database[collection_name].update_one(filter_dict, {"$set": changes})
    return result.matched_count
