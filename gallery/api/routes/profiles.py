from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile

from gallery.api.deps import get_optional_session, get_profile_service
from gallery.domain.models import Profile, ProfileUpdate, Session
from gallery.services.profile_service import ProfileService

router = APIRouter(tags=["profiles"])


@router.get("/profile", response_model=Profile)
async def me(
    session: Optional[Session] = Depends(get_optional_session),
    svc: ProfileService = Depends(get_profile_service),
):
    return await svc.get_profile(session)


@router.put("/profile", response_model=Profile)
async def update_me(
    payload: ProfileUpdate,
    session: Optional[Session] = Depends(get_optional_session),
    svc: ProfileService = Depends(get_profile_service),
):
    return await svc.update_profile(session, username=payload.username, full_name=payload.full_name)


@router.post("/profile/avatar", response_model=Profile)
async def upload_avatar(
    file: UploadFile = File(...),
    session: Optional[Session] = Depends(get_optional_session),
    svc: ProfileService = Depends(get_profile_service),
):
    data = await file.read()
    return await svc.upload_avatar(session, filename=file.filename, content_type=file.content_type, data=data)


@router.get("/profiles/{user_id}", response_model=Profile)
async def public_profile(user_id: UUID, svc: ProfileService = Depends(get_profile_service)):
    return await svc.get_public(str(user_id))
