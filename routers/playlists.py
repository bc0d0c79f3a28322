from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from pymongo import DESCENDING
from pymongo.database import Database

from database import attach_owners, create_document, get_db, get_documents, objid, utcnow, visible_videos
from logger import logger
from responses import api_response
from schemas import Playlist
from security import get_current_user

router = APIRouter(prefix="/api/v1/playlists", tags=["playlists"])


class PlaylistRequest(BaseModel):
    name: str = ""
    description: str = ""


class PlaylistUpdateRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


def get_playlist(db: Database, playlist_id: str) -> dict:
    playlist = db["playlist"].find_one({"_id": objid(playlist_id, "playlist id")})
    if not playlist:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return playlist


def get_own_playlist(db: Database, playlist_id: str, current_user: dict) -> dict:
    playlist = get_playlist(db, playlist_id)
    if playlist["owner"] != current_user["_id"]:
        raise HTTPException(status_code=403, detail="You can't modify another user's playlist")
    return playlist


@router.post("")
def create_playlist(
    payload: PlaylistRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not payload.name.strip():
        raise HTTPException(status_code=400, detail="Playlist name is required")

    playlist = Playlist(owner=current_user["_id"], name=payload.name.strip(), description=payload.description.strip())
    playlist_id = create_document(db, "playlist", playlist)
    return api_response(db["playlist"].find_one({"_id": playlist_id}), "Playlist created successfully", 201)


@router.get("/user/{user_id}")
def get_user_playlists(
    user_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if objid(user_id, "user id") != current_user["_id"]:
        raise HTTPException(status_code=403, detail="You can only list your own playlists")

    playlists = get_documents(
        db, "playlist", {"owner": current_user["_id"]}, sort=[("created_at", DESCENDING), ("_id", DESCENDING)]
    )
    return api_response(playlists, "Playlists fetched successfully")


@router.get("/{playlist_id}")
def get_playlist_by_id(
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    playlist = get_playlist(db, playlist_id)
    videos = db["video"].find({"_id": {"$in": playlist.get("videos", [])}, **visible_videos(current_user["_id"])})
    video_map = {v["_id"]: v for v in attach_owners(db, videos)}
    playlist["videos"] = [video_map[vid] for vid in playlist.get("videos", []) if vid in video_map]
    return api_response(playlist, "Playlist fetched successfully")


@router.patch("/add/{video_id}/{playlist_id}")
def add_video_to_playlist(
    video_id: str,
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    playlist = get_own_playlist(db, playlist_id, current_user)
    video = db["video"].find_one({"_id": objid(video_id, "video id"), **visible_videos(current_user["_id"])})
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    if video["_id"] in playlist.get("videos", []):
        return api_response(playlist, "Video already in playlist")

    # $addToSet keeps membership unique even against a concurrent add
    db["playlist"].update_one(
        {"_id": playlist["_id"]},
        {"$addToSet": {"videos": video["_id"]}, "$set": {"updated_at": utcnow()}},
    )
    return api_response(db["playlist"].find_one({"_id": playlist["_id"]}), "Video added to playlist successfully")


@router.patch("/remove/{video_id}/{playlist_id}")
def remove_video_from_playlist(
    video_id: str,
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    playlist = get_own_playlist(db, playlist_id, current_user)
    db["playlist"].update_one(
        {"_id": playlist["_id"]},
        {"$pull": {"videos": objid(video_id, "video id")}, "$set": {"updated_at": utcnow()}},
    )
    return api_response(db["playlist"].find_one({"_id": playlist["_id"]}), "Video removed from playlist")


@router.patch("/{playlist_id}")
def update_playlist(
    playlist_id: str,
    payload: PlaylistUpdateRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updates = {}
    if payload.name and payload.name.strip():
        updates["name"] = payload.name.strip()
    if payload.description is not None and payload.description.strip():
        updates["description"] = payload.description.strip()
    if not updates:
        raise HTTPException(status_code=400, detail="name or description is required")

    playlist = get_own_playlist(db, playlist_id, current_user)
    updates["updated_at"] = utcnow()
    db["playlist"].update_one({"_id": playlist["_id"]}, {"$set": updates})
    return api_response(db["playlist"].find_one({"_id": playlist["_id"]}), "Playlist updated successfully")


@router.delete("/{playlist_id}")
def delete_playlist(
    playlist_id: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    playlist = get_own_playlist(db, playlist_id, current_user)
    db["playlist"].delete_one({"_id": playlist["_id"]})
    logger.info(f"Playlist {playlist['_id']} deleted by {current_user['_id']}")
    return api_response({}, "Playlist deleted successfully")
