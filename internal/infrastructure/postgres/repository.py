"""
PostgreSQL Product Repository.

Implements the repository pattern for Product persistence with asyncpg.
GTIN uniqueness is enforced by the `products_gtin_key` unique constraint.
"""

import asyncio
from typing import Optional
from uuid import UUID

import asyncpg
from asyncpg import Pool

from internal.domain.errors import ProductAlreadyExistsError
from internal.domain.product import Product


_PRODUCT_COLUMNS = """
    id, gtin, name, description, brand, manufacturer, net_weight,
    net_weight_unit, status, created_by, approved_by, approved_at,
    created_at, updated_at
"""


class PostgresProductRepository:
    """
    PostgreSQL implementation of the Product Repository.

    The repository only persists; auditing and event publishing are driven
    explicitly by the lifecycle service.
    """

    def __init__(self, pool: Pool) -> None:
        """
        Initialize the repository.

        Args:
            pool: asyncpg connection pool.
        """
        self._pool = pool

    async def get_by_gtin(self, gtin: str) -> Optional[Product]:
        """
        Get a product by GTIN.

        Args:
            gtin: Normalized GTIN.

        Returns:
            Product if found, None otherwise.
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE gtin = $1",
                gtin,
            )

            if not row:
                return None

            return self._row_to_entity(row)

    async def get_by_id(self, product_id: UUID) -> Optional[Product]:
        """
        Get a product by storage id.

        Args:
            product_id: Product UUID.

        Returns:
            Product if found, None otherwise.
        """
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = $1",
                product_id,
            )

            if not row:
                return None

            return self._row_to_entity(row)

    async def create(self, product: Product) -> Product:
        """
        Insert a new product.

        Args:
            product: The product to create.

        Returns:
            The created product.

        Raises:
            ProductAlreadyExistsError: If the GTIN is already taken.
        """
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO products (
                        id, gtin, name, description, brand, manufacturer,
                        net_weight, net_weight_unit, status, created_by,
                        approved_by, approved_at, created_at, updated_at
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                    """,
                    product.id,
                    product.gtin,
                    product.name,
                    product.description,
                    product.brand,
                    product.manufacturer,
                    product.net_weight,
                    product.net_weight_unit.value,
                    product.status.value,
                    product.created_by,
                    product.approved_by,
                    product.approved_at,
                    product.created_at,
                    product.updated_at,
                )
        except asyncpg.UniqueViolationError:
            raise ProductAlreadyExistsError(product.gtin)

        return product

    async def update(self, product: Product) -> Product:
        """
        Update a product.

        Args:
            product: The product to update.

        Returns:
            The updated product.
        """
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE products
                SET name = $2,
                    description = $3,
                    brand = $4,
                    manufacturer = $5,
                    net_weight = $6,
                    net_weight_unit = $7,
                    status = $8,
                    approved_by = $9,
                    approved_at = $10,
                    updated_at = $11
                WHERE id = $1
                """,
                product.id,
                product.name,
                product.description,
                product.brand,
                product.manufacturer,
                product.net_weight,
                product.net_weight_unit.value,
                product.status.value,
                product.approved_by,
                product.approved_at,
                product.updated_at,
            )

        return product

    async def delete(self, product_id: UUID) -> bool:
        """
        Delete a product.

        Args:
            product_id: Product UUID.

        Returns:
            True if a row was removed.
        """
        async with self._pool.acquire() as conn:
            result = await conn.execute("DELETE FROM products WHERE id = $1", product_id)
        return result.endswith(" 1")

    async def list_products(
        self,
        status: Optional[str] = None,
        created_by: Optional[str] = None,
        published_or_owned_by: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Product]:
        """
        List products, newest first.

        Args:
            status: Filter by status.
            created_by: Filter by creator.
            published_or_owned_by: Restrict to published products plus the
                pending products of this user.
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            List of products.
        """
        conditions = []
        params: list = []
        param_num = 1

        if status is not None:
            conditions.append(f"status = ${param_num}")
            params.append(status)
            param_num += 1

        if created_by is not None:
            conditions.append(f"created_by = ${param_num}")
            params.append(created_by)
            param_num += 1

        if published_or_owned_by is not None:
            conditions.append(f"(status = 'published' OR created_by = ${param_num})")
            params.append(published_or_owned_by)
            param_num += 1

        where_clause = " AND ".join(conditions) if conditions else "1=1"
        params.extend([limit, offset])

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_PRODUCT_COLUMNS}
                FROM products
                WHERE {where_clause}
                ORDER BY created_at DESC
                LIMIT ${param_num} OFFSET ${param_num + 1}
                """,
                *params,
            )

            return [self._row_to_entity(row) for row in rows]

    async def list_all(self) -> list[Product]:
        """
        List every product, newest first.

        Returns:
            List of products.
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_PRODUCT_COLUMNS} FROM products ORDER BY created_at DESC"
            )

            return [self._row_to_entity(row) for row in rows]

    async def ping(self) -> bool:
        """Return True if the database answers."""
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError):
            return False

    def _row_to_entity(self, row: asyncpg.Record) -> Product:
        """
        Convert a database row to a Product entity.

        Args:
            row: Database row.

        Returns:
            Product entity.
        """
        return Product(
            id=row["id"],
            gtin=row["gtin"],
            name=row["name"],
            description=row["description"],
            brand=row["brand"],
            manufacturer=row["manufacturer"],
            net_weight=row["net_weight"],
            net_weight_unit=row["net_weight_unit"],
            status=row["status"],
            created_by=row["created_by"],
            approved_by=row["approved_by"],
            approved_at=row["approved_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


async def create_pool(dsn: str, min_size: int = 2, max_size: int = 10) -> Pool:
    """
    Create an asyncpg connection pool.

    Args:
        dsn: Database connection string.
        min_size: Minimum pool size.
        max_size: Maximum pool size.

    Returns:
        asyncpg connection pool.
    """
    return await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
    )
