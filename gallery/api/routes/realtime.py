from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from gallery.api.deps import get_media_service, session_from_token
from gallery.domain.enums import MediaKind
from gallery.domain.models import Session
from gallery.domain.tables import table_for
from gallery.services.change_feed import Change, ChangeFeed, get_change_feed
from gallery.services.media_service import MediaService

logger = logging.getLogger("realtime")

router = APIRouter(tags=["realtime"])


def get_feed() -> ChangeFeed:
    return get_change_feed()


@router.websocket("/realtime/{kind}")
async def realtime_list(
    websocket: WebSocket,
    kind: MediaKind,
    svc: MediaService = Depends(get_media_service),
    feed: ChangeFeed = Depends(get_feed),
):
    """
    Pushes the full list for `kind` on connect and again after every change
    notification for that table. `?mine=true&token=...` narrows to the
    caller's own rows.
    """
    mine = (websocket.query_params.get("mine") or "").lower() in ("1", "true", "yes")
    token = websocket.query_params.get("token") or ""

    session: Optional[Session] = None
    if token:
        try:
            session = session_from_token(token)
        except ValueError:
            await websocket.close(code=1008, reason="invalid_token")
            return
    if mine and session is None:
        await websocket.close(code=1008, reason="token_required")
        return

    await websocket.accept()
    lock = asyncio.Lock()

    async def push() -> None:
        if mine:
            rows: List[Any] = await svc.list_mine(kind, session)
        else:
            rows = await svc.list_feed(kind)
        async with lock:
            await websocket.send_json([r.model_dump(mode="json") for r in rows])

    async def on_change(change: Change) -> None:
        logger.info("realtime_refetch", extra={"table": change.table, "type": change.type.value})
        await push()

    t = table_for(kind)
    sub = feed.subscribe(t.table, on_change, user_id=session.user_id if mine and session else None)
    try:
        await push()
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("realtime_disconnected", extra={"kind": t.kind.value})
    finally:
        feed.unsubscribe(sub)
