from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import asyncpg

from gallery.domain.models import Profile

_COLUMNS = "id::text, username, full_name, avatar_url, created_at"


def _to_profile(row: asyncpg.Record) -> Profile:
    return Profile(
        id=str(row["id"]),
        username=str(row["username"] or ""),
        full_name=row["full_name"],
        avatar_url=row["avatar_url"],
        created_at=row["created_at"],
    )


class ProfilesRepo:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def get(self, user_id: str) -> Optional[Profile]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"SELECT {_COLUMNS} FROM profiles WHERE id = $1::uuid", user_id)
        return _to_profile(row) if row else None

    async def get_many(self, user_ids: Iterable[str]) -> Dict[str, Profile]:
        ids = sorted({str(u) for u in user_ids if u})
        if not ids:
            return {}
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM profiles WHERE id = ANY($1::uuid[])",
                ids,
            )
        return {str(r["id"]): _to_profile(r) for r in rows}

    async def update(self, user_id: str, *, username: str, full_name: Optional[str]) -> Optional[Profile]:
        """Raises asyncpg.UniqueViolationError (SQLSTATE 23505) on a taken username."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE profiles
                SET username = $2, full_name = $3
                WHERE id = $1::uuid
                RETURNING {_COLUMNS}
                """,
                user_id,
                username,
                full_name,
            )
        return _to_profile(row) if row else None

    async def set_avatar(self, user_id: str, avatar_url: str) -> Optional[Profile]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"UPDATE profiles SET avatar_url = $2 WHERE id = $1::uuid RETURNING {_COLUMNS}",
                user_id,
                avatar_url,
            )
        return _to_profile(row) if row else None

    async def list_all(self) -> List[Profile]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_COLUMNS} FROM profiles ORDER BY created_at DESC")
        return [_to_profile(r) for r in rows]

    async def delete(self, user_id: str) -> bool:
        async with self.pool.acquire() as conn:
            deleted = await conn.fetchval(
                "DELETE FROM profiles WHERE id = $1::uuid RETURNING 1",
                user_id,
            )
        return bool(deleted)
