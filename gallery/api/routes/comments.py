from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from gallery.api.deps import get_comment_service, get_optional_session
from gallery.domain.models import CommentIn, CommentView, Session
from gallery.services.comment_service import CommentService

router = APIRouter(prefix="/images", tags=["comments"])


@router.get("/{image_id}/comments", response_model=List[CommentView])
async def list_comments(image_id: UUID, svc: CommentService = Depends(get_comment_service)):
    return svc.list(str(image_id))


@router.post("/{image_id}/comments", response_model=CommentView, status_code=201)
async def add_comment(
    image_id: UUID,
    payload: CommentIn,
    session: Optional[Session] = Depends(get_optional_session),
    svc: CommentService = Depends(get_comment_service),
):
    return await svc.add(str(image_id), session, payload.text)
