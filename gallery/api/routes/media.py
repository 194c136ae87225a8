from __future__ import annotations

from typing import List, Optional
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import StreamingResponse

from gallery.api.deps import get_likes_service, get_media_service, get_optional_session
from gallery.domain.enums import MediaKind, SortOption
from gallery.domain.models import FeedEntry, LikeState, MediaDetail, MediaItem, PublishIn, Session
from gallery.services.likes_service import LikesService
from gallery.services.media_service import MediaService

router = APIRouter(prefix="/media", tags=["media"])


def _content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode("ascii").replace('"', "") or "download"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/{kind}", response_model=List[FeedEntry])
async def feed(
    kind: MediaKind,
    q: Optional[str] = Query(default=None),
    svc: MediaService = Depends(get_media_service),
):
    return await svc.list_feed(kind, q)


@router.get("/{kind}/mine", response_model=List[MediaItem])
async def mine(
    kind: MediaKind,
    sort: SortOption = Query(default=SortOption.newest),
    q: Optional[str] = Query(default=None),
    session: Optional[Session] = Depends(get_optional_session),
    svc: MediaService = Depends(get_media_service),
):
    return await svc.list_mine(kind, session, sort, q)


@router.post("/{kind}", response_model=MediaItem, status_code=201)
async def upload(
    kind: MediaKind,
    file: UploadFile = File(...),
    title: str = Form(...),
    description: Optional[str] = Form(default=None),
    tags: List[str] = Form(default=[]),
    session: Optional[Session] = Depends(get_optional_session),
    svc: MediaService = Depends(get_media_service),
):
    data = await file.read()
    split_tags = [t for raw in tags for t in raw.split(",")]
    return await svc.upload(
        kind,
        session,
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        title=title,
        description=description,
        tags=split_tags,
    )


@router.post("/{kind}/publish", response_model=MediaItem, status_code=201)
async def publish(
    kind: MediaKind,
    payload: PublishIn,
    session: Optional[Session] = Depends(get_optional_session),
    svc: MediaService = Depends(get_media_service),
):
    return await svc.publish(kind, session, payload)


@router.get("/{kind}/{media_id}", response_model=MediaDetail)
async def detail(
    kind: MediaKind,
    media_id: UUID,
    session: Optional[Session] = Depends(get_optional_session),
    svc: MediaService = Depends(get_media_service),
):
    return await svc.get_detail(kind, str(media_id), session)


@router.get("/{kind}/{media_id}/download")
async def download(
    kind: MediaKind,
    media_id: UUID,
    svc: MediaService = Depends(get_media_service),
):
    stream = await svc.download(kind, str(media_id))
    return StreamingResponse(
        stream.iter_bytes(),
        media_type=stream.content_type,
        headers={"Content-Disposition": _content_disposition(stream.filename)},
    )


@router.delete("/{kind}/{media_id}", response_model=MediaItem)
async def delete(
    kind: MediaKind,
    media_id: UUID,
    session: Optional[Session] = Depends(get_optional_session),
    svc: MediaService = Depends(get_media_service),
):
    return await svc.delete(kind, str(media_id), session)


# -----------------------------------------------------------------------------
# Likes
# -----------------------------------------------------------------------------

@router.get("/{kind}/{media_id}/like")
async def like_state(
    kind: MediaKind,
    media_id: UUID,
    session: Optional[Session] = Depends(get_optional_session),
    likes: LikesService = Depends(get_likes_service),
):
    return {"liked": await likes.is_liked(kind, str(media_id), session)}


@router.post("/{kind}/{media_id}/like/toggle", response_model=LikeState)
async def toggle_like(
    kind: MediaKind,
    media_id: UUID,
    session: Optional[Session] = Depends(get_optional_session),
    likes: LikesService = Depends(get_likes_service),
):
    return await likes.toggle(kind, str(media_id), session)


@router.put("/{kind}/{media_id}/like", response_model=LikeState)
async def like(
    kind: MediaKind,
    media_id: UUID,
    session: Optional[Session] = Depends(get_optional_session),
    likes: LikesService = Depends(get_likes_service),
):
    return await likes.set_liked(kind, str(media_id), session, True)


@router.delete("/{kind}/{media_id}/like", response_model=LikeState)
async def unlike(
    kind: MediaKind,
    media_id: UUID,
    session: Optional[Session] = Depends(get_optional_session),
    likes: LikesService = Depends(get_likes_service),
):
    return await likes.set_liked(kind, str(media_id), session, False)
