from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo import DESCENDING
from pymongo.database import Database

from database import attach_owners, count_likes, create_document, get_db, objid, utcnow
from responses import api_response
from schemas import Tweet
from security import get_current_user

router = APIRouter(prefix="/api/v1/tweets", tags=["tweets"])

TWEET_OWNER_FIELDS = {"username": 1, "avatar": 1}


class TweetRequest(BaseModel):
    content: str = ""


def get_own_tweet(db: Database, tweet_id: str, current_user: dict) -> dict:
    tweet = db["tweet"].find_one({"_id": objid(tweet_id, "tweet id")})
    if not tweet:
        raise HTTPException(status_code=404, detail="Tweet not found")
    if tweet["owner"] != current_user["_id"]:
        raise HTTPException(status_code=403, detail="You can't modify another user's tweet")
    return tweet


@router.post("")
def create_tweet(
    payload: TweetRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")

    tweet_id = create_document(db, "tweet", Tweet(owner=current_user["_id"], content=payload.content.strip()))
    tweet = db["tweet"].find_one({"_id": tweet_id})
    return api_response(attach_owners(db, [tweet], TWEET_OWNER_FIELDS)[0], "Tweet created successfully", 201)


@router.get("/user/{user_id}")
def get_user_tweets(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    owner = db["user"].find_one({"_id": objid(user_id, "user id")}, {"_id": 1})
    if not owner:
        raise HTTPException(status_code=404, detail="User not found")

    cursor = db["tweet"].find({"owner": owner["_id"]}).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
    tweets = count_likes(db, "tweet", attach_owners(db, cursor, TWEET_OWNER_FIELDS))
    return api_response(tweets, "Tweets fetched successfully")


@router.patch("/{tweet_id}")
def update_tweet(
    tweet_id: str,
    payload: TweetRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    tweet = get_own_tweet(db, tweet_id, current_user)

    db["tweet"].update_one(
        {"_id": tweet["_id"]},
        {"$set": {"content": payload.content.strip(), "updated_at": utcnow()}},
    )
    updated = db["tweet"].find_one({"_id": tweet["_id"]})
    return api_response(attach_owners(db, [updated], TWEET_OWNER_FIELDS)[0], "Tweet updated successfully")


@router.delete("/{tweet_id}")
def delete_tweet(
    tweet_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    tweet = get_own_tweet(db, tweet_id, current_user)
    db["tweet"].delete_one({"_id": tweet["_id"]})
    db["like"].delete_many({"target_type": "tweet", "target": tweet["_id"]})
    return api_response({}, "Tweet deleted successfully")
