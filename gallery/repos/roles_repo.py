from __future__ import annotations

import asyncpg


class RolesRepo:
    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def has_role(self, user_id: str, role: str) -> bool:
        async with self.pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT 1
                FROM user_roles
                WHERE user_id = $1::uuid
                  AND role = $2
                LIMIT 1
                """,
                user_id,
                role,
            )
        return bool(found)

    async def is_admin(self, user_id: str) -> bool:
        return await self.has_role(user_id, "admin")
