"""
Database Migrator Entry Point.

Applies the product database migrations (SQL files) and prepares the search
index schema.

Usage:
    python main.py                      # Apply pending migrations
    python main.py rollback <name>      # Forget an applied migration
    python main.py init-search          # Create the search index table
"""
import asyncio
import sys
from pathlib import Path

import asyncpg
from dotenv import load_dotenv

from config.settings import get_settings
from internal.infrastructure.postgres import PostgresSearchIndex, create_pool
from pkg.logger.logger import get_logger, setup_logging


load_dotenv()
settings = get_settings()

setup_logging(
    level=settings.log_level,
    json_format=settings.json_logs,
    service="migrator",
)

logger = get_logger(__name__)


MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "migrations"


async def get_applied_migrations(conn: asyncpg.Connection) -> set[str]:
    """
    Get the names of already applied migrations.

    Args:
        conn: Database connection.

    Returns:
        Set of applied migration names.
    """
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL UNIQUE,
            applied_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    rows = await conn.fetch("SELECT name FROM _migrations")
    return {row["name"] for row in rows}


def pending_migrations(applied: set[str], directory: Path = MIGRATIONS_DIR) -> list[Path]:
    """
    List migration files not applied yet, in file name order.

    Args:
        applied: Names of applied migrations.
        directory: Directory holding the *.sql files.

    Returns:
        Paths of pending migrations.
    """
    if not directory.exists():
        return []
    return [path for path in sorted(directory.glob("*.sql")) if path.name not in applied]


async def apply_migration(conn: asyncpg.Connection, migration_path: Path) -> None:
    """
    Apply a single migration in its own transaction.

    Args:
        conn: Database connection.
        migration_path: Path to migration SQL file.
    """
    migration_name = migration_path.name
    logger.info("Applying migration", migration=migration_name)

    sql = migration_path.read_text(encoding="utf-8")

    async with conn.transaction():
        await conn.execute(sql)
        await conn.execute(
            "INSERT INTO _migrations (name) VALUES ($1)",
            migration_name,
        )

    logger.info("Migration applied", migration=migration_name)


async def run_migrations() -> None:
    """Run all pending migrations against the product database."""
    conn = await asyncpg.connect(settings.database_url)

    try:
        applied = await get_applied_migrations(conn)
        pending = pending_migrations(applied)

        if not pending:
            logger.info("All migrations already applied", applied=len(applied))
            return

        logger.info("Pending migrations", count=len(pending), applied=len(applied))

        for migration_path in pending:
            await apply_migration(conn, migration_path)

        logger.info("All migrations applied successfully")
    finally:
        await conn.close()


async def rollback_migration(migration_name: str) -> None:
    """
    Remove a migration from the tracking table.

    Schema changes are not reverted; do that by hand.

    Args:
        migration_name: Name of migration to forget.
    """
    conn = await asyncpg.connect(settings.database_url)

    try:
        result = await conn.execute(
            "DELETE FROM _migrations WHERE name = $1",
            migration_name,
        )

        if result.endswith(" 1"):
            logger.info("Migration rolled back", migration=migration_name)
        else:
            logger.warning("Migration not found", migration=migration_name)
    finally:
        await conn.close()


async def init_search_index() -> None:
    """Create the search documents table and its indexes."""
    pool = await create_pool(settings.search_database_url, min_size=1, max_size=1)
    try:
        await PostgresSearchIndex(pool, text_config=settings.search_text_config).ensure_index()
        logger.info("Search index schema ready")
    finally:
        await pool.close()


def main() -> None:
    """Main entry point."""
    args = sys.argv[1:]

    if not args:
        asyncio.run(run_migrations())
    elif args[0] == "rollback" and len(args) > 1:
        asyncio.run(rollback_migration(args[1]))
    elif args[0] == "init-search":
        asyncio.run(init_search_index())
    else:
        print(__doc__)
        sys.exit(1)


if __name__ == "__main__":
    main()
