from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from gallery.domain.enums import MediaKind
from gallery.domain.models import CommentView, Session
from gallery.domain.validators import validate_comment
from gallery.errors import AuthRequired, NotFound
from gallery.repos.media_repo import MediaRepo
from gallery.repos.profiles_repo import ProfilesRepo


class CommentStore:
    """Image comments held in process memory; lost on restart."""

    def __init__(self) -> None:
        self._by_image: Dict[str, List[CommentView]] = {}

    def list(self, image_id: str) -> List[CommentView]:
        return list(self._by_image.get(image_id, []))

    def append(self, image_id: str, comment: CommentView) -> None:
        self._by_image.setdefault(image_id, []).append(comment)


_STORE = CommentStore()


def get_comment_store() -> CommentStore:
    return _STORE


class CommentService:
    def __init__(self, profiles: ProfilesRepo, media: MediaRepo, store: Optional[CommentStore] = None):
        self.profiles = profiles
        self.media = media
        self.store = store or get_comment_store()

    def list(self, image_id: str) -> List[CommentView]:
        return self.store.list(image_id)

    async def add(self, image_id: str, session: Optional[Session], text: str) -> CommentView:
        if session is None:
            raise AuthRequired()
        body = validate_comment(text)
        if await self.media.get(MediaKind.image, image_id) is None:
            raise NotFound("image_not_found")

        profile = await self.profiles.get(session.user_id)
        author = (profile.username if profile else "") or session.email or session.display_name

        comment = CommentView(author=author, text=body, created_at=datetime.now(timezone.utc))
        self.store.append(image_id, comment)
        return comment
