from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import get_db, objid, toggle_association
from logger import logger
from responses import api_response
from schemas import Subscription
from security import get_current_user

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


def list_related_users(db: Database, match: dict, user_field: str):
    """Join subscriptions to the users on ``user_field`` and return their public shape."""
    pipeline = [
        {"$match": match},
        {"$lookup": {"from": "user", "localField": user_field, "foreignField": "_id", "as": "related"}},
        {"$unwind": "$related"},
        {"$sort": {"created_at": -1}},
    ]
    return [
        {
            "_id": row["related"]["_id"],
            "full_name": row["related"].get("full_name"),
            "username": row["related"].get("username"),
            "avatar": row["related"].get("avatar"),
        }
        for row in db["subscription"].aggregate(pipeline)
    ]


def get_existing_user(db: Database, user_id: str, label: str) -> dict:
    user = db["user"].find_one({"_id": objid(user_id, f"{label} id")})
    if not user:
        raise HTTPException(status_code=404, detail=f"{label.capitalize()} not found")
    return user


@router.post("/c/{channel_id}")
def toggle_subscription(
    channel_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    channel_oid = objid(channel_id, "channel id")
    if channel_oid == current_user["_id"]:
        raise HTTPException(status_code=400, detail="You can not subscribe to yourself")
    channel = get_existing_user(db, channel_id, "channel")

    subscription = Subscription(subscriber=current_user["_id"], channel=channel["_id"])
    created = toggle_association(db, "subscription", subscription.model_dump())
    if created is None:
        logger.info(f"User {current_user['_id']} unsubscribed from {channel['_id']}")
        return api_response({"subscribed": False}, "Unsubscribed from channel successfully")

    logger.info(f"User {current_user['_id']} subscribed to {channel['_id']}")
    return api_response({"subscribed": True, "subscription": created}, "Subscribed to channel successfully")


@router.get("/c/{channel_id}")
def get_channel_subscribers(
    channel_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    channel = get_existing_user(db, channel_id, "channel")
    subscribers = list_related_users(db, {"channel": channel["_id"]}, "subscriber")
    return api_response(subscribers, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
def get_subscribed_channels(
    subscriber_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    subscriber = get_existing_user(db, subscriber_id, "user")
    channels = list_related_users(db, {"subscriber": subscriber["_id"]}, "channel")
    return api_response(channels, "Subscribed channels fetched successfully")
