from fastapi import APIRouter, Depends, HTTPException
from pymongo import DESCENDING
from pymongo.database import Database

from database import attach_owners, get_db, objid, toggle_association, visible_videos
from responses import api_response
from schemas import Like
from security import get_current_user

router = APIRouter(prefix="/api/v1/likes", tags=["likes"])

# target_type -> (collection, filter for a document the user may like)
LIKE_TARGETS = {
    "video": ("video", lambda user: visible_videos(user["_id"])),
    "comment": ("comment", lambda user: {}),
    "tweet": ("tweet", lambda user: {}),
}


def toggle_like(db: Database, target_type: str, target_id: str, current_user: dict):
    collection, likeable = LIKE_TARGETS[target_type]
    target = db[collection].find_one({"_id": objid(target_id, f"{target_type} id"), **likeable(current_user)})
    if not target:
        raise HTTPException(status_code=404, detail=f"{target_type.capitalize()} not found")

    like = Like(target_type=target_type, target=target["_id"], liked_by=current_user["_id"])
    created = toggle_association(db, "like", like.model_dump())
    if created is None:
        return api_response({"is_liked": False}, f"{target_type.capitalize()} unliked successfully")
    return api_response({"is_liked": True, "like": created}, f"{target_type.capitalize()} liked successfully")


@router.post("/toggle/v/{video_id}")
def toggle_video_like(video_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return toggle_like(db, "video", video_id, current_user)


@router.post("/toggle/c/{comment_id}")
def toggle_comment_like(comment_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return toggle_like(db, "comment", comment_id, current_user)


@router.post("/toggle/t/{tweet_id}")
def toggle_tweet_like(tweet_id: str, current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return toggle_like(db, "tweet", tweet_id, current_user)


@router.get("/videos")
def get_liked_videos(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    likes = db["like"].find(
        {"target_type": "video", "liked_by": current_user["_id"]},
    ).sort([("created_at", DESCENDING), ("_id", DESCENDING)])
    video_ids = [like["target"] for like in likes]

    videos = db["video"].find({"_id": {"$in": video_ids}, **visible_videos(current_user["_id"])})
    video_map = {v["_id"]: v for v in attach_owners(db, videos)}
    result = [video_map[vid] for vid in video_ids if vid in video_map]
    return api_response(result, "Liked videos fetched successfully")
