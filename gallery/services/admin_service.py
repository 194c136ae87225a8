from __future__ import annotations

import logging
from typing import List, Optional

from gallery.domain.enums import MediaKind
from gallery.domain.models import AdminContentRow, Profile, Session
from gallery.domain.tables import table_for
from gallery.errors import AuthRequired, NotAuthorized, NotFound
from gallery.repos.media_repo import MediaRepo
from gallery.repos.profiles_repo import ProfilesRepo
from gallery.repos.roles_repo import RolesRepo
from gallery.services.search import filter_profiles
from gallery.services.storage_service import StorageProvider, get_storage, remove_best_effort

logger = logging.getLogger("admin_service")


class AdminService:
    def __init__(
        self,
        media: MediaRepo,
        profiles: ProfilesRepo,
        roles: RolesRepo,
        *,
        storage: StorageProvider = get_storage,
    ) -> None:
        self.media = media
        self.profiles = profiles
        self.roles = roles
        self._storage = storage

    async def ensure_admin(self, session: Optional[Session]) -> Session:
        if session is None:
            raise AuthRequired()
        if not await self.roles.is_admin(session.user_id):
            raise NotAuthorized("admin_required")
        return session

    async def list_profiles(self, q: Optional[str] = None) -> List[Profile]:
        return filter_profiles(await self.profiles.list_all(), q)

    async def list_content(self, kind: MediaKind, q: Optional[str] = None) -> List[AdminContentRow]:
        rows = await self.media.list_admin_rows(kind)
        needle = (q or "").strip().lower()
        if not needle:
            return rows
        return [r for r in rows if needle in r.title.lower()]

    async def delete_profile(self, user_id: str) -> None:
        if not await self.profiles.delete(user_id):
            raise NotFound("profile_not_found")
        logger.info("admin_profile_deleted", extra={"user_id": user_id})

    async def delete_content(self, kind: MediaKind, media_id: str) -> None:
        deleted = await self.media.delete_any(kind, media_id)
        if deleted is None:
            raise NotFound(f"{MediaKind(kind).value}_not_found")
        t = table_for(kind)
        await remove_best_effort(self._storage, t.container, deleted.storage_path, reason="admin_deleted")
        logger.info("admin_content_deleted", extra={"kind": t.kind.value, "media_id": media_id})
