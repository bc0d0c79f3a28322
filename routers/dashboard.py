import math

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from database import count_likes, get_db
from responses import api_response
from security import get_current_user

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/stats")
def get_channel_stats(current_user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    owned = {"owner": current_user["_id"], "is_deleted": False}

    totals = list(db["video"].aggregate([
        {"$match": owned},
        {"$group": {"_id": None, "total_videos": {"$sum": 1}, "total_views": {"$sum": "$views"}}},
    ]))
    video_ids = [v["_id"] for v in db["video"].find(owned, {"_id": 1})]

    stats = {
        "total_subscribers": db["subscription"].count_documents({"channel": current_user["_id"]}),
        "total_videos": totals[0]["total_videos"] if totals else 0,
        "total_views": totals[0]["total_views"] if totals else 0,
        "total_likes": db["like"].count_documents({"target_type": "video", "target": {"$in": video_ids}}),
    }
    return api_response(stats, "Channel stats retrieved successfully")


@router.get("/videos")
def get_channel_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    owned = {"owner": current_user["_id"], "is_deleted": False}
    pipeline = [
        {"$match": owned},
        {"$sort": {"created_at": -1, "_id": -1}},
        {"$skip": (page - 1) * limit},
        {"$limit": limit},
    ]
    videos = count_likes(db, "video", db["video"].aggregate(pipeline))
    total = db["video"].count_documents(owned)

    return api_response(
        {
            "videos": videos,
            "total_videos": total,
            "current_page": page,
            "total_pages": math.ceil(total / limit),
        },
        "Channel videos retrieved successfully",
    )
