from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gallery.db import get_pool
from gallery.domain.models import Session
from gallery.errors import AuthRequired
from gallery.repos import LikesRepo, MediaRepo, ProfilesRepo, RolesRepo
from gallery.security import decode_access_jwt
from gallery.services.admin_service import AdminService
from gallery.services.comment_service import CommentService
from gallery.services.generation_service import GenerationService, get_generation_service
from gallery.services.likes_service import LikesService
from gallery.services.media_service import MediaService
from gallery.services.profile_service import ProfileService
from gallery.services.providers.openai_images import OpenAIImageClient
from gallery.services.providers.replicate import ReplicateClient
from gallery.services.providers.suno import SunoClient

bearer = HTTPBearer(auto_error=False)


def session_from_token(token: str) -> Session:
    """Decode a bearer token into a Session; raises ValueError on a bad token."""
    claims = decode_access_jwt(token)
    sub = claims.get("sub")
    if not sub:
        raise ValueError("invalid_token: missing_sub")
    user_id = str(UUID(str(sub)))
    metadata = claims.get("user_metadata") or {}
    return Session(
        user_id=user_id,
        email=claims.get("email"),
        metadata=metadata if isinstance(metadata, dict) else {},
        access_token=token,
    )


def get_optional_session(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> Optional[Session]:
    """
    No Authorization header -> anonymous (None).
    A header that does not decode is rejected rather than treated as anonymous.
    """
    if not creds or not creds.credentials:
        return None
    try:
        return session_from_token(creds.credentials)
    except ValueError:
        raise HTTPException(status_code=401, detail="invalid_token")


def require_session(session: Optional[Session] = Depends(get_optional_session)) -> Session:
    if session is None:
        raise AuthRequired()
    return session


# -----------------------------------------------------------------------------
# Repos / services (pool-backed)
# -----------------------------------------------------------------------------

async def get_media_repo() -> MediaRepo:
    return MediaRepo(await get_pool())


async def get_profiles_repo() -> ProfilesRepo:
    return ProfilesRepo(await get_pool())


async def get_likes_repo() -> LikesRepo:
    return LikesRepo(await get_pool())


async def get_roles_repo() -> RolesRepo:
    return RolesRepo(await get_pool())


def get_media_service(
    media: MediaRepo = Depends(get_media_repo),
    profiles: ProfilesRepo = Depends(get_profiles_repo),
    likes: LikesRepo = Depends(get_likes_repo),
) -> MediaService:
    return MediaService(media, profiles, likes)


def get_likes_service(likes: LikesRepo = Depends(get_likes_repo)) -> LikesService:
    return LikesService(likes)


def get_profile_service(profiles: ProfilesRepo = Depends(get_profiles_repo)) -> ProfileService:
    return ProfileService(profiles)


def get_comment_service(
    profiles: ProfilesRepo = Depends(get_profiles_repo),
    media: MediaRepo = Depends(get_media_repo),
) -> CommentService:
    return CommentService(profiles, media)


def get_admin_service(
    media: MediaRepo = Depends(get_media_repo),
    profiles: ProfilesRepo = Depends(get_profiles_repo),
    roles: RolesRepo = Depends(get_roles_repo),
) -> AdminService:
    return AdminService(media, profiles, roles)


def get_generations() -> GenerationService:
    return get_generation_service()


async def require_admin(
    session: Optional[Session] = Depends(get_optional_session),
    admin: AdminService = Depends(get_admin_service),
) -> Session:
    return await admin.ensure_admin(session)


# -----------------------------------------------------------------------------
# Provider clients (proxy functions)
# -----------------------------------------------------------------------------

def get_suno_client() -> SunoClient:
    return SunoClient()


def get_replicate_client() -> ReplicateClient:
    return ReplicateClient()


def get_openai_image_client() -> OpenAIImageClient:
    return OpenAIImageClient()
