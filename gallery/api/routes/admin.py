from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from gallery.api.deps import get_admin_service, require_admin
from gallery.domain.enums import MediaKind
from gallery.domain.models import AdminContentRow, Profile
from gallery.services.admin_service import AdminService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/profiles", response_model=List[Profile])
async def list_profiles(q: Optional[str] = Query(default=None), svc: AdminService = Depends(get_admin_service)):
    return await svc.list_profiles(q)


@router.delete("/profiles/{user_id}")
async def delete_profile(user_id: UUID, svc: AdminService = Depends(get_admin_service)):
    await svc.delete_profile(str(user_id))
    return {"ok": True}


@router.get("/content/{kind}", response_model=List[AdminContentRow])
async def list_content(
    kind: MediaKind,
    q: Optional[str] = Query(default=None),
    svc: AdminService = Depends(get_admin_service),
):
    return await svc.list_content(kind, q)


@router.delete("/content/{kind}/{media_id}")
async def delete_content(kind: MediaKind, media_id: UUID, svc: AdminService = Depends(get_admin_service)):
    await svc.delete_content(kind, str(media_id))
    return {"ok": True}
