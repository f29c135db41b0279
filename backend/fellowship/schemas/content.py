from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

PostStatus = Literal["draft", "published", "archived"]


# -----------------------------
# Posts
# -----------------------------
class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1)
    status: PostStatus = "draft"


class PostUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    content: Optional[str] = Field(default=None, min_length=1)
    status: Optional[PostStatus] = None


class PostOut(BaseModel):
    id: int
    title: str
    content: str
    author_id: Optional[str] = None
    status: str
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# -----------------------------
# Gallery
# -----------------------------
class AlbumCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class AlbumUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None


class AlbumOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    creator_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ImageOut(BaseModel):
    id: int
    album_id: Optional[int] = None
    uploader_id: Optional[str] = None
    pathname: str
    url: str
    content_type: str
    size: int
    caption: Optional[str] = None
    created_at: datetime


class DeleteImagesRequest(BaseModel):
    pathnames: List[str] = Field(min_length=1)


class DeleteImagesResponse(BaseModel):
    deleted: List[str]
    not_found: List[str]


# -----------------------------
# Notifications
# -----------------------------
class NotificationOut(BaseModel):
    id: int
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
