"""
PostgreSQL Audit Repository.

The product_history table is append-only: this repository exposes inserts and
reads, nothing that rewrites or removes an entry.
"""

from typing import Any, Optional

import asyncpg
from asyncpg import Pool

from internal.domain.audit import (
    AuditAction,
    AuditActionStats,
    AuditEntry,
    AuditFilters,
    AuditStats,
)
from internal.infrastructure.json_codec import dumps, loads_object


_ENTRY_COLUMNS = """
    id, gtin, product_id, action, changed_by, changed_at, changes,
    previous_data, new_data, metadata
"""


class PostgresAuditRepository:
    """PostgreSQL implementation of the audit trail store."""

    def __init__(self, pool: Pool) -> None:
        """
        Initialize the repository.

        Args:
            pool: asyncpg connection pool.
        """
        self._pool = pool

    async def append(self, entry: AuditEntry) -> AuditEntry:
        """
        Insert an audit entry.

        Args:
            entry: The entry to store. Snapshots must already be sanitized.

        Returns:
            The stored entry.
        """
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO product_history (
                    id, gtin, product_id, action, changed_by, changed_at,
                    changes, previous_data, new_data, metadata
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                """,
                entry.id,
                entry.gtin,
                entry.product_id,
                entry.action.value,
                entry.changed_by,
                entry.changed_at,
                self._to_json(entry.changes),
                self._to_json(entry.previous_data),
                self._to_json(entry.new_data),
                dumps(entry.metadata),
            )

        return entry

    async def list_for_product(
        self,
        gtin: str,
        limit: int = 50,
        offset: int = 0,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEntry]:
        """
        List the history of one product, newest first.

        Args:
            gtin: Product GTIN.
            limit: Maximum number of results.
            offset: Number of results to skip.
            action: Filter by action.

        Returns:
            List of audit entries.
        """
        return await self.find(
            AuditFilters(gtin=gtin, action=action, limit=limit, offset=offset)
        )

    async def find(self, filters: AuditFilters) -> list[AuditEntry]:
        """
        Query audit entries, newest first.

        Args:
            filters: Query filters and pagination.

        Returns:
            List of audit entries.
        """
        conditions = []
        params: list[Any] = []
        param_num = 1

        if filters.gtin is not None:
            conditions.append(f"gtin = ${param_num}")
            params.append(filters.gtin)
            param_num += 1

        if filters.action is not None:
            conditions.append(f"action = ${param_num}")
            params.append(AuditAction(filters.action).value)
            param_num += 1

        if filters.changed_by is not None:
            conditions.append(f"changed_by = ${param_num}")
            params.append(filters.changed_by)
            param_num += 1

        if filters.name:
            conditions.append(
                f"(new_data->>'name' ILIKE ${param_num} "
                f"OR previous_data->>'name' ILIKE ${param_num})"
            )
            params.append(f"%{filters.name}%")
            param_num += 1

        if filters.date_from is not None:
            conditions.append(f"changed_at >= ${param_num}")
            params.append(filters.date_from)
            param_num += 1

        if filters.date_to is not None:
            conditions.append(f"changed_at <= ${param_num}")
            params.append(filters.date_to)
            param_num += 1

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.extend([filters.limit, filters.offset])

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_ENTRY_COLUMNS}
                FROM product_history
                WHERE {where_clause}
                ORDER BY changed_at DESC
                LIMIT ${param_num} OFFSET ${param_num + 1}
                """,
                *params,
            )

            return [self._row_to_entry(row) for row in rows]

    async def stats_for_product(self, gtin: str) -> AuditStats:
        """
        Summarize the history of one product.

        Args:
            gtin: Product GTIN.

        Returns:
            Totals per action with the latest change time.
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT action, COUNT(*) AS count, MAX(changed_at) AS last_change
                FROM product_history
                WHERE gtin = $1
                GROUP BY action
                """,
                gtin,
            )

        stats = AuditStats()
        for row in rows:
            stats.by_action[row["action"]] = AuditActionStats(
                count=row["count"],
                last_change=row["last_change"],
            )
            stats.total_changes += row["count"]
        return stats

    def _to_json(self, data: Optional[dict]) -> Optional[str]:
        return dumps(data) if data is not None else None

    def _row_to_entry(self, row: asyncpg.Record) -> AuditEntry:
        """
        Convert a database row to an AuditEntry.

        Args:
            row: Database row.

        Returns:
            AuditEntry entity.
        """
        return AuditEntry(
            id=row["id"],
            gtin=row["gtin"],
            product_id=row["product_id"],
            action=row["action"],
            changed_by=row["changed_by"],
            changed_at=row["changed_at"],
            changes=loads_object(row["changes"]),
            previous_data=loads_object(row["previous_data"]),
            new_data=loads_object(row["new_data"]),
            metadata=loads_object(row["metadata"]) or {},
        )
