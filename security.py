"""Password hashing, JWT session credentials and the current-user dependency."""

import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt
from bson import ObjectId
from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from pymongo.database import Database

from config import Settings, get_settings
from database import PRIVATE_USER_FIELDS, get_db, utcnow

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"
ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def create_access_token(user: Dict[str, Any], settings: Settings) -> str:
    payload = {
        "_id": str(user["_id"]),
        "email": user.get("email"),
        "username": user.get("username"),
        "full_name": user.get("full_name"),
        "exp": utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.ACCESS_TOKEN_SECRET, algorithm=ALGORITHM)


def create_refresh_token(user: Dict[str, Any], settings: Settings) -> str:
    payload = {
        "_id": str(user["_id"]),
        "exp": utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        # unique per issue so a rotated token never equals its successor
        "iat": utcnow(),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, settings.REFRESH_TOKEN_SECRET, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def issue_tokens(db: Database, user: Dict[str, Any], settings: Settings) -> Dict[str, str]:
    """Create a new access/refresh pair and store the refresh token on the user."""
    access_token = create_access_token(user, settings)
    refresh_token = create_refresh_token(user, settings)
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"refresh_token": refresh_token}})
    return {"access_token": access_token, "refresh_token": refresh_token}


def set_auth_cookies(response: Response, tokens: Dict[str, str], settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.set_cookie(
            name,
            tokens[name],
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite="lax",
        )


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.COOKIE_SECURE, samesite="lax")


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized request")

    payload = decode_token(token, settings.ACCESS_TOKEN_SECRET)
    user_id = payload.get("_id")
    if not user_id or not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=401, detail="Invalid access token")

    user = db["user"].find_one({"_id": ObjectId(user_id)}, PRIVATE_USER_FIELDS)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid access token")
    return user
