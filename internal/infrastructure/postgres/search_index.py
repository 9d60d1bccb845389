"""
PostgreSQL full-text search index.

Search documents live in their own database, owned by the search service.
Text fields are combined into a weighted generated tsvector column.
"""

import asyncio
import re
from typing import Optional

import asyncpg
from asyncpg import Pool

from internal.domain.search import SearchDocument, SearchResult


_TEXT_CONFIG_PATTERN = re.compile(r"^[a-z_]+$")

_DOCUMENT_COLUMNS = """
    id, gtin, name, description, brand, manufacturer, net_weight,
    net_weight_unit, status, created_by_id, approved_by_id,
    created_at, updated_at, approved_at
"""


class PostgresSearchIndex:
    """
    Search index backed by a PostgreSQL table.

    Upserts are keyed by the product storage id, so re-indexing the same
    product overwrites its document.
    """

    def __init__(self, pool: Pool, text_config: str = "simple") -> None:
        """
        Initialize the index.

        Args:
            pool: asyncpg connection pool for the search database.
            text_config: PostgreSQL text search configuration name.

        Raises:
            ValueError: If the configuration name is not a plain identifier.
        """
        if not _TEXT_CONFIG_PATTERN.match(text_config):
            raise ValueError(f"Invalid text search configuration '{text_config}'")
        self._pool = pool
        self._text_config = text_config

    async def ensure_index(self) -> None:
        """Create the documents table and its indexes if they do not exist."""
        cfg = self._text_config
        async with self._pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS search_documents (
                    id TEXT PRIMARY KEY,
                    gtin TEXT,
                    name TEXT,
                    description TEXT,
                    brand TEXT,
                    manufacturer TEXT,
                    net_weight DOUBLE PRECISION,
                    net_weight_unit TEXT,
                    status TEXT,
                    created_by_id TEXT,
                    approved_by_id TEXT,
                    created_at TIMESTAMPTZ,
                    updated_at TIMESTAMPTZ,
                    approved_at TIMESTAMPTZ,
                    indexed_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    search_vector TSVECTOR GENERATED ALWAYS AS (
                        setweight(to_tsvector('{cfg}', coalesce(name, '')), 'A') ||
                        setweight(to_tsvector('{cfg}', coalesce(brand, '')), 'B') ||
                        setweight(to_tsvector('{cfg}', coalesce(manufacturer, '')), 'B') ||
                        setweight(to_tsvector('{cfg}', coalesce(description, '')), 'C')
                    ) STORED
                );
                CREATE INDEX IF NOT EXISTS idx_search_documents_vector
                    ON search_documents USING GIN (search_vector);
                CREATE INDEX IF NOT EXISTS idx_search_documents_gtin
                    ON search_documents (gtin);
                CREATE INDEX IF NOT EXISTS idx_search_documents_status
                    ON search_documents (status);
                """
            )

    async def ping(self) -> bool:
        """Return True if the search database answers."""
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError):
            return False

    async def count(self) -> int:
        """Return the number of indexed documents."""
        async with self._pool.acquire() as conn:
            return await conn.fetchval("SELECT COUNT(*) FROM search_documents")

    async def upsert(self, document: SearchDocument) -> None:
        """
        Insert or overwrite a document.

        Args:
            document: Document to store.
        """
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO search_documents (
                    id, gtin, name, description, brand, manufacturer,
                    net_weight, net_weight_unit, status, created_by_id,
                    approved_by_id, created_at, updated_at, approved_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                ON CONFLICT (id) DO UPDATE SET
                    gtin = EXCLUDED.gtin,
                    name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    brand = EXCLUDED.brand,
                    manufacturer = EXCLUDED.manufacturer,
                    net_weight = EXCLUDED.net_weight,
                    net_weight_unit = EXCLUDED.net_weight_unit,
                    status = EXCLUDED.status,
                    created_by_id = EXCLUDED.created_by_id,
                    approved_by_id = EXCLUDED.approved_by_id,
                    created_at = EXCLUDED.created_at,
                    updated_at = EXCLUDED.updated_at,
                    approved_at = EXCLUDED.approved_at,
                    indexed_at = NOW()
                """,
                document.id,
                document.gtin,
                document.name,
                document.description,
                document.brand,
                document.manufacturer,
                document.net_weight,
                document.net_weight_unit,
                document.status,
                document.created_by_id,
                document.approved_by_id,
                document.created_at,
                document.updated_at,
                document.approved_at,
            )

    async def delete(self, document_id: str) -> bool:
        """
        Remove a document if present.

        Args:
            document_id: Document id.

        Returns:
            True if a document was removed.
        """
        async with self._pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM search_documents WHERE id = $1", document_id
            )
        return result.endswith(" 1")

    async def delete_all(self) -> int:
        """
        Remove every document.

        Returns:
            Number of removed documents.
        """
        async with self._pool.acquire() as conn:
            result = await conn.execute("DELETE FROM search_documents")
        return int(result.split()[-1])

    async def get(self, document_id: str) -> Optional[SearchDocument]:
        """
        Get a document by id.

        Args:
            document_id: Document id.

        Returns:
            SearchDocument if found, None otherwise.
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_DOCUMENT_COLUMNS} FROM search_documents WHERE id = $1",
                document_id,
            )

            if not row:
                return None

            return self._row_to_document(row)

    async def search(
        self,
        query: str,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult:
        """
        Full-text search over indexed documents.

        An empty query matches every document.

        Args:
            query: Plain-text search query.
            status: Filter by status.
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            SearchResult with the page and the total hit count.
        """
        conditions = []
        params: list = []
        param_num = 1
        order_by = "updated_at DESC NULLS LAST"

        if query.strip():
            tsquery = f"plainto_tsquery('{self._text_config}', ${param_num})"
            conditions.append(f"search_vector @@ {tsquery}")
            order_by = f"ts_rank(search_vector, {tsquery}) DESC, {order_by}"
            params.append(query.strip())
            param_num += 1

        if status is not None:
            conditions.append(f"status = ${param_num}")
            params.append(status)
            param_num += 1

        where_clause = " AND ".join(conditions) if conditions else "1=1"

        # Count query uses same filters but no limit/offset
        count_params = params.copy()
        params.extend([limit, offset])

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_DOCUMENT_COLUMNS}
                FROM search_documents
                WHERE {where_clause}
                ORDER BY {order_by}
                LIMIT ${param_num} OFFSET ${param_num + 1}
                """,
                *params,
            )
            total = await conn.fetchval(
                f"SELECT COUNT(*) FROM search_documents WHERE {where_clause}",
                *count_params,
            )

        return SearchResult(
            documents=[self._row_to_document(row) for row in rows],
            total=total or 0,
            limit=limit,
            offset=offset,
        )

    def _row_to_document(self, row: asyncpg.Record) -> SearchDocument:
        """
        Convert a database row to a SearchDocument.

        Args:
            row: Database row.

        Returns:
            SearchDocument.
        """
        return SearchDocument(
            id=row["id"],
            gtin=row["gtin"],
            name=row["name"],
            description=row["description"],
            brand=row["brand"],
            manufacturer=row["manufacturer"],
            net_weight=row["net_weight"],
            net_weight_unit=row["net_weight_unit"],
            status=row["status"],
            created_by_id=row["created_by_id"],
            approved_by_id=row["approved_by_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            approved_at=row["approved_at"],
        )
