from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from pymongo import DESCENDING
from pymongo.database import Database

from database import attach_owners, count_likes, create_document, get_db, objid, utcnow, visible_videos
from responses import api_response
from schemas import Comment
from security import get_current_user

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


class CommentRequest(BaseModel):
    content: str = ""


def get_live_video(db: Database, video_id: str, current_user: dict) -> dict:
    video = db["video"].find_one({"_id": objid(video_id, "video id"), **visible_videos(current_user["_id"])})
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")
    return video


def get_own_comment(db: Database, comment_id: str, current_user: dict) -> dict:
    comment = db["comment"].find_one({"_id": objid(comment_id, "comment id")})
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    if comment["owner"] != current_user["_id"]:
        raise HTTPException(status_code=403, detail="You do not have permission to modify this comment")
    return comment


@router.get("/{video_id}")
def list_video_comments(
    video_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    video = get_live_video(db, video_id, current_user)
    filter_dict = {"video": video["_id"]}
    cursor = (
        db["comment"].find(filter_dict)
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    comments = count_likes(db, "comment", attach_owners(db, cursor))
    total = db["comment"].count_documents(filter_dict)
    return api_response(
        {
            "comments": comments,
            "pagination": {
                "current_page": page,
                "limit": limit,
                "total_comments": total,
                "has_next_page": len(comments) == limit,
            },
        },
        "Comments fetched successfully",
    )


@router.post("/{video_id}")
def add_comment(
    video_id: str,
    payload: CommentRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    video = get_live_video(db, video_id, current_user)

    comment = Comment(video=video["_id"], owner=current_user["_id"], content=payload.content.strip())
    comment_id = create_document(db, "comment", comment)
    return api_response(db["comment"].find_one({"_id": comment_id}), "Comment added successfully", 201)


@router.patch("/c/{comment_id}")
def update_comment(
    comment_id: str,
    payload: CommentRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.content.strip():
        raise HTTPException(status_code=400, detail="Content is required")
    comment = get_own_comment(db, comment_id, current_user)

    db["comment"].update_one(
        {"_id": comment["_id"]},
        {"$set": {"content": payload.content.strip(), "updated_at": utcnow()}},
    )
    updated = db["comment"].find_one({"_id": comment["_id"]})
    return api_response(attach_owners(db, [updated])[0], "Comment updated successfully")


@router.delete("/c/{comment_id}")
def delete_comment(
    comment_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    comment = get_own_comment(db, comment_id, current_user)
    db["comment"].delete_one({"_id": comment["_id"]})
    db["like"].delete_many({"target_type": "comment", "target": comment["_id"]})
    return api_response({}, "Comment deleted successfully")
