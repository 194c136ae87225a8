from __future__ import annotations

import uuid
from typing import Sequence

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Receive, Scope, Send


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Reuses the caller's X-Request-Id or mints one; echoed on the response."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = rid
        resp = await call_next(request)
        resp.headers["X-Request-Id"] = rid
        return resp


class ScopedCORSMiddleware(CORSMiddleware):
    """CORSMiddleware that leaves the given path prefixes to their own handlers."""

    def __init__(self, app: ASGIApp, *, exclude_prefixes: Sequence[str] = (), **kwargs) -> None:
        super().__init__(app, **kwargs)
        self.exclude_prefixes = tuple(exclude_prefixes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.exclude_prefixes and scope["path"].startswith(self.exclude_prefixes):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)
