"""
MongoDB access helpers.

The client and database are opened once at start-up (see ``main.create_app``)
and kept on ``app.state``; handlers receive the database through the
``get_db`` dependency instead of importing a module-level global.

Collection names are the lowercase of the schema class name:
user, video, comment, like, playlist, subscription, tweet.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException, Request
from pydantic import BaseModel
from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

# Minimal public shape of a user embedded in other documents
OWNER_FIELDS = {"full_name": 1, "username": 1, "avatar": 1}

# Never leave the store
PRIVATE_USER_FIELDS = {"password": 0, "refresh_token": 0}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_db(request: Request) -> Database:
    return request.app.state.db


def ensure_indexes(db: Database) -> None:
    db["user"].create_index("username", unique=True)
    db["user"].create_index("email", unique=True)
    db["like"].create_index(
        [("liked_by", ASCENDING), ("target_type", ASCENDING), ("target", ASCENDING)],
        unique=True,
    )
    db["subscription"].create_index(
        [("subscriber", ASCENDING), ("channel", ASCENDING)],
        unique=True,
    )
    db["video"].create_index("owner")
    db["comment"].create_index("video")


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> ObjectId:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    return db[collection_name].insert_one(doc).inserted_id


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List] = None,
    projection: Optional[Dict[str, int]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def toggle_association(db: Database, collection_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Remove the association identified by ``key`` or create it when absent.

    Returns the created document, or ``None`` when an existing one was removed.
    Both branches are single conditional writes on the unique key, so two
    identical concurrent toggles cannot leave duplicates behind.
    """
    if db[collection_name].delete_one(key).deleted_count:
        return None
    try:
        db[collection_name].update_one(
            key,
            {"$setOnInsert": {"created_at": utcnow(), "updated_at": utcnow()}},
            upsert=True,
        )
    except DuplicateKeyError:
        # a concurrent toggle created it first
        pass
    return db[collection_name].find_one(key)


def visible_videos(viewer_id: ObjectId) -> Dict[str, Any]:
    """Filter for videos ``viewer_id`` may reach: not deleted, and published unless they own it."""
    return {"is_deleted": False, "$or": [{"is_published": True}, {"owner": viewer_id}]}


def objid(id_str: str, label: str = "id") -> ObjectId:
    if not id_str or not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")
    return ObjectId(id_str)


def attach_owners(db: Database, docs: Iterable[Dict[str, Any]], fields: Optional[Dict[str, int]] = None) -> List[Dict[str, Any]]:
    """Replace each document's ``owner`` id with the owner's public fields."""
    docs = list(docs)
    owner_ids = {d["owner"] for d in docs if d.get("owner") is not None}
    if not owner_ids:
        return docs
    users = db["user"].find({"_id": {"$in": list(owner_ids)}}, fields or OWNER_FIELDS)
    user_map = {u["_id"]: u for u in users}
    for d in docs:
        d["owner"] = user_map.get(d.get("owner"))
    return docs


def count_likes(db: Database, target_type: str, docs: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Annotate each document with ``likes_count`` for the given target type."""
    docs = list(docs)
    counts = {
        row["_id"]: row["count"]
        for row in db["like"].aggregate([
            {"$match": {"target_type": target_type, "target": {"$in": [d["_id"] for d in docs]}}},
            {"$group": {"_id": "$target", "count": {"$sum": 1}}},
        ])
    }
    for d in docs:
        d["likes_count"] = counts.get(d["_id"], 0)
    return docs
