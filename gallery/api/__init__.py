from __future__ import annotations

from fastapi import APIRouter

from gallery.api.health import router as health_router
from gallery.api.routes.admin import router as admin_router
from gallery.api.routes.comments import router as comments_router
from gallery.api.routes.functions import router as functions_router
from gallery.api.routes.generations import router as generations_router
from gallery.api.routes.media import router as media_router
from gallery.api.routes.profiles import router as profiles_router
from gallery.api.routes.realtime import router as realtime_router

API_PREFIX = "/api"


def build_router() -> APIRouter:
    r = APIRouter()
    r.include_router(health_router, prefix=API_PREFIX)
    r.include_router(media_router, prefix=API_PREFIX)
    r.include_router(profiles_router, prefix=API_PREFIX)
    r.include_router(comments_router, prefix=API_PREFIX)
    r.include_router(generations_router, prefix=API_PREFIX)
    r.include_router(admin_router, prefix=API_PREFIX)
    r.include_router(realtime_router, prefix=API_PREFIX)
    r.include_router(functions_router)
    return r
