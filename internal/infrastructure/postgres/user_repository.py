"""
User Repository.

Read-only access to user records, used to expand creator and approver
references in product views.
"""
from typing import Iterable, Optional

import asyncpg

from ...domain.product import UserRef


class PostgresUserRepository:
    """Repository for user lookups."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get_by_id(self, user_id: str) -> Optional[UserRef]:
        """Get a user by ID."""
        query = "SELECT id, name, email, role FROM users WHERE id = $1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, user_id)
        return self._row_to_user(row) if row else None

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserRef]:
        """
        Get several users in one query.

        Args:
            user_ids: User IDs; duplicates and None are ignored.

        Returns:
            Mapping of user ID to UserRef for the users that exist.
        """
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}

        query = "SELECT id, name, email, role FROM users WHERE id = ANY($1::text[])"
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, ids)
        return {row["id"]: self._row_to_user(row) for row in rows}

    def _row_to_user(self, row: asyncpg.Record) -> UserRef:
        return UserRef(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            role=row["role"],
        )
