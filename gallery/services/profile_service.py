from __future__ import annotations

import logging
from typing import Optional

from gallery.config import settings
from gallery.domain.models import Profile, Session
from gallery.domain.validators import optional_text, validate_avatar, validate_username
from gallery.errors import (
    UNIQUE_VIOLATION_SQLSTATE,
    AuthRequired,
    NotFound,
    RemoteCallFailed,
    UniqueConstraintViolation,
)
from gallery.repos.profiles_repo import ProfilesRepo
from gallery.services.storage_service import (
    StorageProvider,
    build_storage_path,
    file_ext,
    get_storage,
    remove_best_effort,
)

logger = logging.getLogger("profile_service")

AVATAR_PREFIX = "avatars"


def previous_avatar_path(avatar_url: Optional[str]) -> Optional[str]:
    """avatars/<last URL path segment>, or None when there is no avatar."""
    url = (avatar_url or "").split("?", 1)[0].rstrip("/")
    if not url:
        return None
    name = url.rsplit("/", 1)[-1]
    return f"{AVATAR_PREFIX}/{name}" if name else None


class ProfileService:
    def __init__(self, repo: ProfilesRepo, *, storage: StorageProvider = get_storage):
        self.repo = repo
        self._storage = storage

    async def get_profile(self, session: Optional[Session]) -> Profile:
        if session is None:
            raise AuthRequired()
        return await self.get_public(session.user_id)

    async def get_public(self, user_id: str) -> Profile:
        profile = await self.repo.get(user_id)
        if profile is None:
            raise NotFound("profile_not_found")
        return profile

    async def update_profile(
        self,
        session: Optional[Session],
        *,
        username: Optional[str],
        full_name: Optional[str],
    ) -> Profile:
        if session is None:
            raise AuthRequired()
        clean_username = validate_username(username)
        clean_full_name = optional_text(full_name)

        try:
            profile = await self.repo.update(session.user_id, username=clean_username, full_name=clean_full_name)
        except Exception as e:
            if getattr(e, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE:
                raise UniqueConstraintViolation("username_taken", field="username") from e
            raise

        if profile is None:
            raise NotFound("profile_not_found")
        logger.info("profile_updated", extra={"user_id": session.user_id})
        return profile

    async def upload_avatar(
        self,
        session: Optional[Session],
        *,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
    ) -> Profile:
        if session is None:
            raise AuthRequired()
        validate_avatar(content_type, len(data or b""), max_bytes=settings.AVATAR_MAX_BYTES)

        current = await self.get_public(session.user_id)
        container = settings.IMAGES_CONTAINER

        path = build_storage_path(user_id=session.user_id, ext=file_ext(filename, "png"), prefix=AVATAR_PREFIX)
        try:
            uploaded = await self._storage().upload(container, path, data, content_type=content_type or "image/png")
        except Exception as e:
            logger.warning("avatar_upload_failed", extra={"user_id": session.user_id, "error": str(e)})
            raise RemoteCallFailed("avatar_upload_failed") from e

        profile = await self.repo.set_avatar(session.user_id, uploaded.public_url)
        if profile is None:
            raise NotFound("profile_not_found")

        # old file goes only once the profile points at the new one
        previous = previous_avatar_path(current.avatar_url)
        if previous and previous != uploaded.storage_path:
            await remove_best_effort(self._storage, container, previous, reason="avatar_replaced")
        return profile
