from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Set

import asyncpg

from gallery.config import settings
from gallery.domain.enums import ChangeType

logger = logging.getLogger("change_feed")


@dataclass(frozen=True)
class Change:
    table: str
    type: ChangeType
    id: Optional[str] = None
    user_id: Optional[str] = None


ChangeCallback = Callable[[Change], Awaitable[None]]


@dataclass(frozen=True, eq=False)
class Subscription:
    table: str
    callback: ChangeCallback
    user_id: Optional[str] = None

    def matches(self, change: Change) -> bool:
        if change.table != self.table:
            return False
        return self.user_id is None or change.user_id == self.user_id


def parse_payload(payload: str) -> Optional[Change]:
    try:
        data: Any = json.loads(payload)
        return Change(
            table=str(data["table"]),
            type=ChangeType(str(data["type"]).upper()),
            id=str(data["id"]) if data.get("id") is not None else None,
            user_id=str(data["user_id"]) if data.get("user_id") is not None else None,
        )
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("change_payload_invalid", extra={"payload": payload[:200], "error": str(e)})
        return None


class ChangeFeed:
    """
    Postgres LISTEN/NOTIFY fan-out.

    One dedicated connection listens on REALTIME_CHANNEL (fed by the trigger in
    sql/realtime.sql); each notification is delivered to every matching
    subscriber as its own task. Subscribers are expected to refetch.
    """

    def __init__(self, channel: Optional[str] = None) -> None:
        self.channel = channel or settings.REALTIME_CHANNEL
        self._subs: List[Subscription] = []
        self._tasks: Set[asyncio.Task] = set()
        self._pool: Optional[asyncpg.Pool] = None
        self._conn: Optional[asyncpg.Connection] = None

    async def start(self, pool: asyncpg.Pool) -> None:
        if self._conn is not None:
            return
        self._pool = pool
        self._conn = await pool.acquire()
        await self._conn.add_listener(self.channel, self._on_notify)
        logger.info("change_feed_started", extra={"channel": self.channel})

    async def stop(self) -> None:
        conn, pool = self._conn, self._pool
        self._conn = None
        self._pool = None
        if conn is not None and pool is not None:
            try:
                await conn.remove_listener(self.channel, self._on_notify)
            finally:
                await pool.release(conn)
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("change_feed_stopped", extra={"channel": self.channel})

    def subscribe(self, table: str, callback: ChangeCallback, *, user_id: Optional[str] = None) -> Subscription:
        sub = Subscription(table=table, callback=callback, user_id=user_id)
        self._subs.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subs:
            self._subs.remove(sub)

    def _on_notify(self, conn: asyncpg.Connection, pid: int, channel: str, payload: str) -> None:
        change = parse_payload(payload)
        if change is not None:
            self.dispatch(change)

    def dispatch(self, change: Change) -> int:
        """Schedule every matching callback; returns how many were scheduled."""
        count = 0
        for sub in list(self._subs):
            if not sub.matches(change):
                continue
            task = asyncio.get_running_loop().create_task(self._deliver(sub, change))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            count += 1
        return count

    async def _deliver(self, sub: Subscription, change: Change) -> None:
        try:
            await sub.callback(change)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("change_subscriber_failed", extra={"table": change.table, "type": change.type.value})


_FEED: ChangeFeed | None = None


def get_change_feed() -> ChangeFeed:
    global _FEED
    if _FEED is None:
        _FEED = ChangeFeed()
    return _FEED
