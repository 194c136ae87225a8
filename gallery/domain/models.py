from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from gallery.domain.enums import GenerationStatus, MediaKind


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Session:
    """
    Identity of the caller for one request.

    Built from the bearer token by api.deps and passed explicitly into every
    service call that needs to know who is acting.
    """
    user_id: str
    email: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    access_token: str = ""

    @property
    def display_name(self) -> str:
        return (
            str(self.metadata.get("username") or "").strip()
            or str(self.metadata.get("full_name") or "").strip()
            or (self.email or "")
            or self.user_id
        )


# -----------------------------------------------------------------------------
# Profiles
# -----------------------------------------------------------------------------

class Profile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    username: str
    full_name: Optional[str] = None


class AuthorView(BaseModel):
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


# -----------------------------------------------------------------------------
# Media
# -----------------------------------------------------------------------------

class MediaItem(BaseModel):
    id: str
    kind: MediaKind
    user_id: str
    title: str
    description: Optional[str] = None
    media_url: str
    storage_path: Optional[str] = None
    likes_count: int = 0
    created_at: Optional[datetime] = None
    prompt: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    cover_url: Optional[str] = None


class ShareLinks(BaseModel):
    copy_url: str
    twitter: str
    facebook: str


class MediaDetail(BaseModel):
    item: MediaItem
    author: Optional[AuthorView] = None
    liked: bool = False
    share: Optional[ShareLinks] = None


class LikeState(BaseModel):
    liked: bool
    likes_count: int


class FeedEntry(BaseModel):
    item: MediaItem
    author: Optional[AuthorView] = None


class PublishIn(BaseModel):
    source_url: str
    title: str
    description: Optional[str] = None
    prompt: Optional[str] = None
    cover_url: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class AdminContentRow(BaseModel):
    id: str
    title: str
    user_id: str
    created_at: Optional[datetime] = None


# -----------------------------------------------------------------------------
# Comments
# -----------------------------------------------------------------------------

class CommentIn(BaseModel):
    text: str


class CommentView(BaseModel):
    author: str
    text: str
    created_at: datetime


# -----------------------------------------------------------------------------
# Generation
# -----------------------------------------------------------------------------

class GenerateIn(BaseModel):
    prompt: str


class GenerationResult(BaseModel):
    url: str
    title: Optional[str] = None
    image_url: Optional[str] = None


class GenerationView(BaseModel):
    id: str
    kind: MediaKind
    status: GenerationStatus
    prompt: str
    message: str = ""
    elapsed_seconds: float = 0.0
    result: Optional[GenerationResult] = None
    error: Optional[str] = None


class ImageGenerationOut(BaseModel):
    image_url: str


# -----------------------------------------------------------------------------
# Proxy function bodies (camelCase on the wire)
# -----------------------------------------------------------------------------

class PromptBody(BaseModel):
    prompt: str


class MusicStatusBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clip_ids: List[str] = Field(alias="clipIds", min_length=1)


class VideoStatusBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prediction_id: str = Field(alias="predictionId", min_length=1)
