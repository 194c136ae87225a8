from __future__ import annotations

from typing import Optional

import asyncpg

from gallery.domain.enums import MediaKind
from gallery.domain.models import LikeState
from gallery.domain.tables import MediaTable, table_for


class LikesRepo:
    """
    Like rows and the denormalized likes_count on the parent row.

    Every mutation runs in one transaction holding a row lock on the parent,
    so likes_count always equals the number of like rows.
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def is_liked(self, kind: MediaKind, media_id: str, user_id: str) -> bool:
        t = table_for(kind)
        sql = f"""
        SELECT 1 FROM {t.like_table}
        WHERE {t.fk_column} = $1::uuid AND user_id = $2::uuid
        """
        async with self.pool.acquire() as conn:
            return bool(await conn.fetchval(sql, media_id, user_id))

    async def set_liked(self, kind: MediaKind, media_id: str, user_id: str, liked: bool) -> Optional[LikeState]:
        t = table_for(kind)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                return await self._set_liked(conn, t, media_id, user_id, liked)

    async def toggle(self, kind: MediaKind, media_id: str, user_id: str) -> Optional[LikeState]:
        t = table_for(kind)
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                locked = await self._lock_parent(conn, t, media_id)
                if locked is None:
                    return None
                exists = await conn.fetchval(
                    f"SELECT 1 FROM {t.like_table} WHERE {t.fk_column} = $1::uuid AND user_id = $2::uuid",
                    media_id,
                    user_id,
                )
                return await self._set_liked(conn, t, media_id, user_id, not exists)

    async def _lock_parent(self, conn: asyncpg.Connection, t: MediaTable, media_id: str) -> Optional[int]:
        row = await conn.fetchrow(
            f"SELECT likes_count FROM {t.table} WHERE id = $1::uuid FOR UPDATE",
            media_id,
        )
        if row is None:
            return None
        return int(row["likes_count"] or 0)

    async def _set_liked(
        self,
        conn: asyncpg.Connection,
        t: MediaTable,
        media_id: str,
        user_id: str,
        liked: bool,
    ) -> Optional[LikeState]:
        count = await self._lock_parent(conn, t, media_id)
        if count is None:
            return None

        if liked:
            changed = await conn.fetchval(
                f"""
                INSERT INTO {t.like_table} ({t.fk_column}, user_id)
                VALUES ($1::uuid, $2::uuid)
                ON CONFLICT ({t.fk_column}, user_id) DO NOTHING
                RETURNING 1
                """,
                media_id,
                user_id,
            )
            delta_sql = "COALESCE(likes_count, 0) + 1"
        else:
            changed = await conn.fetchval(
                f"""
                DELETE FROM {t.like_table}
                WHERE {t.fk_column} = $1::uuid AND user_id = $2::uuid
                RETURNING 1
                """,
                media_id,
                user_id,
            )
            delta_sql = "GREATEST(COALESCE(likes_count, 0) - 1, 0)"

        if changed:
            count = await conn.fetchval(
                f"UPDATE {t.table} SET likes_count = {delta_sql} WHERE id = $1::uuid RETURNING likes_count",
                media_id,
            )

        return LikeState(liked=liked, likes_count=int(count or 0))
