from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gallery.errors import GalleryError

logger = logging.getLogger("api.errors")


async def gallery_error_handler(request: Request, exc: GalleryError) -> JSONResponse:
    extra = {
        "path": request.url.path,
        "error_code": exc.code,
        "detail": exc.message,
        "request_id": getattr(request.state, "request_id", None),
    }
    if exc.status_code >= 500:
        logger.error("request_failed", extra=extra)
    else:
        logger.info("request_rejected", extra=extra)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GalleryError, gallery_error_handler)
