from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Body, Cookie, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel, EmailStr, TypeAdapter, ValidationError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import Settings
from database import OWNER_FIELDS, PRIVATE_USER_FIELDS, attach_owners, create_document, get_db, utcnow, visible_videos
from logger import logger
from media import get_media_storage, upload_file
from responses import api_response
from schemas import User
from security import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    decode_token,
    get_app_settings,
    get_current_user,
    hash_password,
    issue_tokens,
    set_auth_cookies,
    verify_password,
)

router = APIRouter(prefix="/api/v1/users", tags=["users"])
email_adapter = TypeAdapter(EmailStr)


# -------------------- Models --------------------
class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str


class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class UpdateAccountRequest(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None


# -------------------- Auth --------------------
@router.post("/register")
def register(
    full_name: str = Form(""),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    media=Depends(get_media_storage),
    settings: Settings = Depends(get_app_settings),
):
    if any(not field.strip() for field in (full_name, email, username, password)):
        raise HTTPException(status_code=400, detail="All fields are required")

    username = username.strip().lower()
    try:
        email = email_adapter.validate_python(email.strip().lower())
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid email address")

    # Uniqueness checks
    if db["user"].find_one({"$or": [{"username": username}, {"email": email}]}):
        raise HTTPException(status_code=409, detail="User with email or username already exists")

    if avatar is None or not avatar.filename:
        raise HTTPException(status_code=400, detail="Avatar file is required")

    avatar_upload = upload_file(media, avatar, settings.TEMP_DIR)
    if not avatar_upload:
        raise HTTPException(status_code=400, detail="Avatar image upload failed")
    cover_upload = upload_file(media, cover_image, settings.TEMP_DIR)

    user = User(
        username=username,
        email=email,
        full_name=full_name.strip(),
        password=hash_password(password),
        avatar=avatar_upload["url"],
        cover_image=cover_upload["url"] if cover_upload else "",
    )
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        # lost a race with a concurrent registration of the same username or email
        for uploaded in (avatar_upload, cover_upload):
            if uploaded:
                media.delete(uploaded["url"])
        raise HTTPException(status_code=409, detail="User with email or username already exists")
    created = db["user"].find_one({"_id": user_id}, PRIVATE_USER_FIELDS)
    if not created:
        raise HTTPException(status_code=500, detail="Something went wrong while registering user")

    logger.info(f"Registered user '{username}' ({user_id})")
    return api_response(created, "User registered successfully", 201)


@router.post("/login")
def login(
    payload: LoginRequest,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    if not (payload.username or payload.email):
        raise HTTPException(status_code=400, detail="username or email is required")

    conditions = []
    if payload.username:
        conditions.append({"username": payload.username.strip().lower()})
    if payload.email:
        conditions.append({"email": payload.email.strip().lower()})
    user = db["user"].find_one({"$or": conditions})
    if not user:
        raise HTTPException(status_code=404, detail="User does not exist")

    if not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid user credentials")

    tokens = issue_tokens(db, user, settings)
    logged_in = db["user"].find_one({"_id": user["_id"]}, PRIVATE_USER_FIELDS)

    logger.info(f"User '{user['username']}' logged in")
    response = api_response({"user": logged_in, **tokens}, "User logged in successfully")
    set_auth_cookies(response, tokens, settings)
    return response


@router.post("/logout")
def logout(
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    db["user"].update_one({"_id": current_user["_id"]}, {"$unset": {"refresh_token": 1}})
    response = api_response({}, "User logged out")
    clear_auth_cookies(response, settings)
    return response


@router.post("/refresh-token")
def refresh_access_token(
    payload: Optional[RefreshRequest] = Body(None),
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    incoming = refresh_cookie or (payload.refresh_token if payload else None)
    if not incoming:
        raise HTTPException(status_code=401, detail="Unauthorized request")

    decoded = decode_token(incoming, settings.REFRESH_TOKEN_SECRET)
    user_id = decoded.get("_id")
    user = db["user"].find_one({"_id": ObjectId(user_id)}) if ObjectId.is_valid(user_id or "") else None
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    # only the most recently issued refresh token is accepted
    if incoming != user.get("refresh_token"):
        raise HTTPException(status_code=401, detail="Refresh token is expired or used")

    tokens = issue_tokens(db, user, settings)
    response = api_response(tokens, "Access token refreshed")
    set_auth_cookies(response, tokens, settings)
    return response


# -------------------- Account --------------------
@router.post("/change-password")
def change_current_password(
    payload: ChangePasswordRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    user = db["user"].find_one({"_id": current_user["_id"]})
    if not verify_password(payload.old_password, user.get("password", "")):
        raise HTTPException(status_code=400, detail="Invalid old password")
    if not payload.new_password.strip():
        raise HTTPException(status_code=400, detail="New password is required")

    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password": hash_password(payload.new_password), "updated_at": utcnow()}},
    )
    return api_response({}, "Password changed successfully")


@router.get("/current-user")
def get_current_user_profile(current_user: dict = Depends(get_current_user)):
    return api_response(current_user, "Current user fetched successfully")


@router.patch("/update-account")
def update_account_details(
    payload: UpdateAccountRequest,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    updates = {}
    if payload.full_name and payload.full_name.strip():
        updates["full_name"] = payload.full_name.strip()
    if payload.email:
        email = payload.email.lower()
        if db["user"].find_one({"email": email, "_id": {"$ne": current_user["_id"]}}):
            raise HTTPException(status_code=409, detail="Email already in use")
        updates["email"] = email
    if not updates:
        raise HTTPException(status_code=400, detail="full_name or email is required")

    updates["updated_at"] = utcnow()
    try:
        db["user"].update_one({"_id": current_user["_id"]}, {"$set": updates})
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="Email already in use")
    user = db["user"].find_one({"_id": current_user["_id"]}, PRIVATE_USER_FIELDS)
    return api_response(user, "Account details updated successfully")


def _replace_image(field: str, file: Optional[UploadFile], current_user: dict, db: Database, media, settings: Settings):
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail=f"{field} file is missing")
    uploaded = upload_file(media, file, settings.TEMP_DIR)
    if not uploaded:
        raise HTTPException(status_code=400, detail=f"Error while uploading {field}")

    db["user"].update_one(
        {"_id": current_user["_id"]},
        {"$set": {field: uploaded["url"], "updated_at": utcnow()}},
    )
    return db["user"].find_one({"_id": current_user["_id"]}, PRIVATE_USER_FIELDS)


@router.patch("/avatar")
def update_user_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media=Depends(get_media_storage),
    settings: Settings = Depends(get_app_settings),
):
    user = _replace_image("avatar", avatar, current_user, db, media, settings)
    return api_response(user, "Avatar image updated successfully")


@router.patch("/cover-image")
def update_user_cover_image(
    cover_image: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    media=Depends(get_media_storage),
    settings: Settings = Depends(get_app_settings),
):
    user = _replace_image("cover_image", cover_image, current_user, db, media, settings)
    return api_response(user, "Cover image updated successfully")


# -------------------- Channel --------------------
@router.get("/c/{username}")
def get_user_channel_profile(
    username: str,
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    if not username.strip():
        raise HTTPException(status_code=400, detail="username is missing")

    pipeline = [
        {"$match": {"username": username.strip().lower()}},
        {"$lookup": {"from": "subscription", "localField": "_id", "foreignField": "channel", "as": "subscribers"}},
        {"$lookup": {"from": "subscription", "localField": "_id", "foreignField": "subscriber", "as": "subscribed_to"}},
        {"$addFields": {
            "subscribers_count": {"$size": "$subscribers"},
            "channels_subscribed_to_count": {"$size": "$subscribed_to"},
        }},
    ]
    channels = list(db["user"].aggregate(pipeline))
    if not channels:
        raise HTTPException(status_code=404, detail="Channel does not exist")

    channel = channels[0]
    profile = {
        "_id": channel["_id"],
        "full_name": channel.get("full_name"),
        "username": channel.get("username"),
        "email": channel.get("email"),
        "avatar": channel.get("avatar"),
        "cover_image": channel.get("cover_image", ""),
        "subscribers_count": channel["subscribers_count"],
        "channels_subscribed_to_count": channel["channels_subscribed_to_count"],
        "is_subscribed": any(s.get("subscriber") == current_user["_id"] for s in channel["subscribers"]),
    }
    return api_response(profile, "User channel fetched successfully")


@router.get("/history")
def get_watch_history(
    current_user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    history = current_user.get("watch_history", [])
    videos = db["video"].find({"_id": {"$in": history}, **visible_videos(current_user["_id"])})
    video_map = {v["_id"]: v for v in attach_owners(db, videos, OWNER_FIELDS)}
    # keep watch order
    result = [video_map[vid] for vid in history if vid in video_map]
    return api_response(result, "Watch history fetched successfully")
