from __future__ import annotations

from typing import Any, Dict, List, Optional

import asyncpg

from gallery.domain.enums import MediaKind
from gallery.domain.models import AdminContentRow, MediaItem
from gallery.domain.tables import MediaTable, table_for

_BASE_COLUMNS = (
    "id",
    "user_id",
    "title",
    "description",
    "storage_path",
    "likes_count",
    "created_at",
    "prompt",
)


def _select_list(t: MediaTable) -> str:
    cols = [f"{c}::text" if c in ("id", "user_id") else c for c in _BASE_COLUMNS]
    cols.append(f"{t.url_column} AS media_url")
    cols.extend(t.extra_columns)
    return ", ".join(cols)


def row_to_item(kind: MediaKind, row: Dict[str, Any]) -> MediaItem:
    return MediaItem(
        id=str(row["id"]),
        kind=kind,
        user_id=str(row["user_id"]),
        title=str(row.get("title") or ""),
        description=row.get("description"),
        media_url=str(row.get("media_url") or ""),
        storage_path=row.get("storage_path"),
        likes_count=int(row.get("likes_count") or 0),
        created_at=row.get("created_at"),
        prompt=row.get("prompt"),
        tags=list(row.get("tags") or []),
        cover_url=row.get("cover_url"),
    )


class MediaRepo:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def list_all(self, kind: MediaKind) -> List[MediaItem]:
        t = table_for(kind)
        sql = f"SELECT {_select_list(t)} FROM {t.table} ORDER BY created_at DESC"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql)
        return [row_to_item(t.kind, dict(r)) for r in rows]

    async def list_by_user(self, kind: MediaKind, user_id: str) -> List[MediaItem]:
        t = table_for(kind)
        sql = f"""
        SELECT {_select_list(t)}
        FROM {t.table}
        WHERE user_id = $1::uuid
        ORDER BY created_at DESC
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql, user_id)
        return [row_to_item(t.kind, dict(r)) for r in rows]

    async def get(self, kind: MediaKind, media_id: str) -> Optional[MediaItem]:
        t = table_for(kind)
        sql = f"SELECT {_select_list(t)} FROM {t.table} WHERE id = $1::uuid"
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(sql, media_id)
        return row_to_item(t.kind, dict(row)) if row else None

    async def insert(
        self,
        kind: MediaKind,
        *,
        user_id: str,
        title: str,
        description: Optional[str],
        media_url: str,
        storage_path: Optional[str],
        prompt: Optional[str] = None,
        tags: Optional[List[str]] = None,
        cover_url: Optional[str] = None,
    ) -> MediaItem:
        t = table_for(kind)
        values: Dict[str, Any] = {
            "user_id": user_id,
            "title": title,
            "description": description,
            t.url_column: media_url,
            "storage_path": storage_path,
            "prompt": prompt,
        }
        if "tags" in t.extra_columns:
            values["tags"] = list(tags or [])
        if "cover_url" in t.extra_columns:
            values["cover_url"] = cover_url

        cols = list(values.keys())
        placeholders = [
            f"${i}::uuid" if c == "user_id" else f"${i}"
            for i, c in enumerate(cols, start=1)
        ]
        sql = f"""
        INSERT INTO {t.table} ({", ".join(cols)})
        VALUES ({", ".join(placeholders)})
        RETURNING {_select_list(t)}
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(sql, *values.values())
        return row_to_item(t.kind, dict(row))

    async def delete_owned(self, kind: MediaKind, media_id: str, user_id: str) -> Optional[MediaItem]:
        """
        Owner-scoped delete. Returns the deleted row, or None when no row
        matched both the id and the owner.
        """
        t = table_for(kind)
        sql = f"""
        DELETE FROM {t.table}
        WHERE id = $1::uuid AND user_id = $2::uuid
        RETURNING {_select_list(t)}
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(sql, media_id, user_id)
        return row_to_item(t.kind, dict(row)) if row else None

    async def delete_any(self, kind: MediaKind, media_id: str) -> Optional[MediaItem]:
        t = table_for(kind)
        sql = f"DELETE FROM {t.table} WHERE id = $1::uuid RETURNING {_select_list(t)}"
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(sql, media_id)
        return row_to_item(t.kind, dict(row)) if row else None

    async def list_admin_rows(self, kind: MediaKind) -> List[AdminContentRow]:
        t = table_for(kind)
        sql = f"""
        SELECT id::text, title, user_id::text, created_at
        FROM {t.table}
        ORDER BY created_at DESC
        """
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql)
        return [
            AdminContentRow(
                id=str(r["id"]),
                title=str(r["title"] or ""),
                user_id=str(r["user_id"]),
                created_at=r["created_at"],
            )
            for r in rows
        ]
