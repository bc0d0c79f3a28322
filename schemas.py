"""
Database Schemas for the Video Sharing backend

Each Pydantic model maps to a MongoDB collection. The collection name is the lowercase of the class name.

Collections:
- User -> user
- Video -> video
- Comment -> comment
- Like -> like
- Playlist -> playlist
- Subscription -> subscription
- Tweet -> tweet

References between collections are stored as ObjectIds.
"""

from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class User(Document):
    username: str = Field(..., min_length=1, description="Lowercased, unique")
    email: EmailStr
    full_name: str = Field(..., min_length=1)
    password: str = Field(..., description="Bcrypt hash")
    avatar: str = Field(..., description="Avatar URL")
    cover_image: str = ""
    watch_history: List[ObjectId] = Field(default_factory=list)
    refresh_token: Optional[str] = None


class Video(Document):
    owner: ObjectId
    title: str = Field(..., min_length=1)
    description: str = ""
    video_file: str = Field(..., description="Media URL")
    thumbnail: str = ""
    duration: float = Field(0, ge=0, description="Seconds, as reported by the media storage")
    views: int = 0
    is_published: bool = True
    is_deleted: bool = False


class Comment(Document):
    video: ObjectId
    owner: ObjectId
    content: str = Field(..., min_length=1)


class Like(Document):
    target_type: Literal["video", "comment", "tweet"]
    target: ObjectId
    liked_by: ObjectId


class Playlist(Document):
    owner: ObjectId
    name: str = Field(..., min_length=1)
    description: str = ""
    videos: List[ObjectId] = Field(default_factory=list)


class Subscription(Document):
    subscriber: ObjectId = Field(..., description="The user who subscribes")
    channel: ObjectId = Field(..., description="The user being subscribed to")


class Tweet(Document):
    owner: ObjectId
    content: str = Field(..., min_length=1)
