from __future__ import annotations

import logging
from typing import Optional

from gallery.domain.enums import MediaKind
from gallery.domain.models import LikeState, Session
from gallery.errors import AuthRequired, NotFound
from gallery.repos.likes_repo import LikesRepo

logger = logging.getLogger("likes_service")


class LikesService:
    def __init__(self, repo: LikesRepo):
        self.repo = repo

    async def is_liked(self, kind: MediaKind, media_id: str, session: Optional[Session]) -> bool:
        if session is None:
            return False
        return await self.repo.is_liked(kind, media_id, session.user_id)

    async def toggle(self, kind: MediaKind, media_id: str, session: Optional[Session]) -> LikeState:
        if session is None:
            raise AuthRequired()
        state = await self.repo.toggle(kind, media_id, session.user_id)
        if state is None:
            raise NotFound(f"{MediaKind(kind).value}_not_found")
        logger.info(
            "like_toggled",
            extra={"kind": MediaKind(kind).value, "media_id": media_id, "liked": state.liked, "likes_count": state.likes_count},
        )
        return state

    async def set_liked(self, kind: MediaKind, media_id: str, session: Optional[Session], liked: bool) -> LikeState:
        if session is None:
            raise AuthRequired()
        state = await self.repo.set_liked(kind, media_id, session.user_id, liked)
        if state is None:
            raise NotFound(f"{MediaKind(kind).value}_not_found")
        return state
