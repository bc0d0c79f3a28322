import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from config import Settings
from database import attach_owners, create_document, get_db, objid, utcnow
from logger import logger
from media import get_media_storage, upload_file
from responses import ApiError, api_response
from schemas import Video
from security import get_app_settings, get_current_user

router = APIRouter(prefix="/api/v1/videos", tags=["videos"])

SORTABLE_FIELDS = ("created_at", "views", "duration", "title")


def get_owned_video(db: Database, video_id: str, current_user: dict) -> dict:
    """Load a live video and make sure the requester owns it."""
    video = db["video"].find_one({"_id": objid(video_id, "video id")})
    if not video or video.get("is_deleted"):
        raise HTTPException(status_code=404, detail="Video not found")
    if video["owner"] != current_user["_id"]:
        raise HTTPException(status_code=403, detail="You can't modify another user's video")
    return video


@router.get("")
def list_videos(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    query: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_type: str = Query("desc", pattern="^(asc|desc)$"),
    user_id: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    filter_dict = {"is_deleted": False}

    owner = objid(user_id, "user id") if user_id else None
    if owner is not None:
        filter_dict["owner"] = owner
    # owners listing their own channel also see drafts
    if owner is None or owner != current_user["_id"]:
        filter_dict["is_published"] = True

    if query:
        regex = {"$regex": re.escape(query), "$options": "i"}
        filter_dict["$or"] = [{"title": regex}, {"description": regex}]

    if sort_by and sort_by not in SORTABLE_FIELDS:
        raise ApiError(400, "Invalid sort field", [f"sort_by must be one of: {', '.join(SORTABLE_FIELDS)}"])
    direction = ASCENDING if sort_type == "asc" else DESCENDING
    sort = [(sort_by or "created_at", direction), ("_id", direction)]

    cursor = db["video"].find(filter_dict).sort(sort).skip((page - 1) * limit).limit(limit)
    videos = attach_owners(db, cursor)
    total = db["video"].count_documents(filter_dict)

    return api_response(
        {
            "videos": videos,
            "pagination": {
                "current_page": page,
                "limit": limit,
                "total_videos": total,
                "has_next_page": len(videos) == limit,
            },
        },
        "Videos fetched successfully",
    )


@router.post("")
def publish_video(
    title: str = Form(""),
    description: str = Form(""),
    is_published: bool = Form(True),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media=Depends(get_media_storage),
    settings: Settings = Depends(get_app_settings),
):
    if not title.strip():
        raise HTTPException(status_code=400, detail="Title is required")
    if video_file is None or not video_file.filename:
        raise HTTPException(status_code=400, detail="Video file is required")

    uploaded_video = upload_file(media, video_file, settings.TEMP_DIR)
    if not uploaded_video:
        raise HTTPException(status_code=500, detail="Video upload failed")
    uploaded_thumb = upload_file(media, thumbnail, settings.TEMP_DIR)

    video = Video(
        owner=current_user["_id"],
        title=title.strip(),
        description=description.strip(),
        video_file=uploaded_video["url"],
        thumbnail=uploaded_thumb["url"] if uploaded_thumb else "",
        duration=uploaded_video.get("duration") or 0,
        is_published=is_published,
    )
    video_id = create_document(db, "video", video)
    created = db["video"].find_one({"_id": video_id})

    logger.info(f"User {current_user['_id']} published video {video_id}")
    return api_response(created, "Video uploaded successfully", 201)


@router.get("/{video_id}")
def get_video(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    _id = objid(video_id, "video id")
    video = db["video"].find_one({"_id": _id})
    if not video or video.get("is_deleted"):
        raise HTTPException(status_code=404, detail="Video not found")
    if not video.get("is_published") and video["owner"] != current_user["_id"]:
        raise HTTPException(status_code=403, detail="You don't have permission to view this video")

    # The watch-history append is conditional, so the counter moves once per viewer
    appended = db["user"].update_one(
        {"_id": current_user["_id"], "watch_history": {"$ne": _id}},
        {"$push": {"watch_history": _id}},
    )
    if appended.modified_count:
        db["video"].update_one({"_id": _id}, {"$inc": {"views": 1}})

    video = db["video"].find_one({"_id": _id})
    return api_response(attach_owners(db, [video])[0], "Video fetched successfully")


@router.patch("/toggle/publish/{video_id}")
def toggle_publish_status(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    video = get_owned_video(db, video_id, current_user)
    is_published = not video.get("is_published", False)
    db["video"].update_one(
        {"_id": video["_id"]},
        {"$set": {"is_published": is_published, "updated_at": utcnow()}},
    )
    logger.info(f"Video {video['_id']} is_published -> {is_published}")
    return api_response({"is_published": is_published}, "Video publish status changed successfully")


@router.patch("/{video_id}")
def update_video(
    video_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    is_published: Optional[bool] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media=Depends(get_media_storage),
    settings: Settings = Depends(get_app_settings),
):
    video = get_owned_video(db, video_id, current_user)

    updates = {}
    if title and title.strip():
        updates["title"] = title.strip()
    if description is not None:
        updates["description"] = description.strip()
    if is_published is not None:
        updates["is_published"] = is_published
    if thumbnail is not None and thumbnail.filename:
        uploaded = upload_file(media, thumbnail, settings.TEMP_DIR)
        if not uploaded:
            raise HTTPException(status_code=500, detail="Thumbnail upload failed")
        updates["thumbnail"] = uploaded["url"]

    if updates:
        updates["updated_at"] = utcnow()
        db["video"].update_one({"_id": video["_id"]}, {"$set": updates})

    video = db["video"].find_one({"_id": video["_id"]})
    return api_response(attach_owners(db, [video])[0], "Video updated successfully")


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    video = get_owned_video(db, video_id, current_user)
    db["video"].update_one({"_id": video["_id"]}, {"$set": {"is_deleted": True, "updated_at": utcnow()}})
    logger.info(f"Video {video['_id']} soft-deleted by {current_user['_id']}")
    return api_response({}, "Video deleted successfully")
