from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gallery.api import build_router
from gallery.api.errors import register_exception_handlers
from gallery.config import settings
from gallery.db import close_pool, init_pool
from gallery.logging import configure_logging
from gallery.api.routes.functions import FUNCTIONS_PREFIX
from gallery.middleware import RequestIdMiddleware, ScopedCORSMiddleware
from gallery.services.change_feed import get_change_feed
from gallery.services.generation_service import get_generation_service

logger = logging.getLogger("svc-gallery")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    pool = await init_pool()
    feed = get_change_feed()
    try:
        await feed.start(pool)
    except Exception:
        # REST routes do not depend on the change feed.
        logger.exception("change_feed_start_failed")
    logger.info("startup_complete", extra={"service": settings.SERVICE_NAME})
    try:
        yield
    finally:
        await get_generation_service().shutdown()
        await feed.stop()
        await close_pool()
        logger.info("shutdown_complete", extra={"service": settings.SERVICE_NAME})


def create_app() -> FastAPI:
    app = FastAPI(title=settings.SERVICE_NAME, version="dev", lifespan=lifespan)

    app.add_middleware(RequestIdMiddleware)
    # proxy functions answer their own preflight with fixed headers
    app.add_middleware(
        ScopedCORSMiddleware,
        exclude_prefixes=[FUNCTIONS_PREFIX + "/"],
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(build_router())

    @app.get("/")
    async def root():
        return {"service": settings.SERVICE_NAME, "status": "ok"}

    return app


app = create_app()
