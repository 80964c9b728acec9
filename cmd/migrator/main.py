"""
Database Migrator Entry Point.

Applies the taxonomy schema migrations from migrations/*.sql.
"""
import asyncio
from pathlib import Path

import asyncpg

from config.settings import Settings
from pkg.logger import get_logger, setup_logging

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent.parent / "migrations"


async def get_applied_migrations(conn: asyncpg.Connection) -> set[str]:
    """
    Get already applied migrations, creating the tracking table if needed.

    Args:
        conn: Database connection.

    Returns:
        Set of applied migration file names.
    """
    await conn.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            id SERIAL PRIMARY KEY,
            name VARCHAR(255) NOT NULL UNIQUE,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)

    rows = await conn.fetch("SELECT name FROM _migrations")
    return {row["name"] for row in rows}


def pending_migrations(migrations_dir: Path, applied: set[str]) -> list[Path]:
    """
    SQL files not applied yet, in file name order.

    Args:
        migrations_dir: Directory holding NNN_name.sql files.
        applied: Names already recorded as applied.

    Returns:
        Paths to apply.
    """
    if not migrations_dir.exists():
        return []
    return [f for f in sorted(migrations_dir.glob("*.sql")) if f.name not in applied]


async def apply_migration(conn: asyncpg.Connection, migration_path: Path) -> None:
    """
    Apply one migration inside a transaction.

    Args:
        conn: Database connection.
        migration_path: Migration SQL file.
    """
    sql = migration_path.read_text(encoding="utf-8")

    async with conn.transaction():
        await conn.execute(sql)
        await conn.execute(
            "INSERT INTO _migrations (name) VALUES ($1)",
            migration_path.name,
        )

    logger.info("Migration applied", migration=migration_path.name)


async def run_migrations(database_url: str) -> int:
    """
    Apply all pending migrations.

    Args:
        database_url: PostgreSQL DSN.

    Returns:
        Number of migrations applied.
    """
    conn = await asyncpg.connect(database_url)
    try:
        applied = await get_applied_migrations(conn)
        pending = pending_migrations(MIGRATIONS_DIR, applied)

        if not pending:
            logger.info("All migrations already applied", applied=len(applied))
            return 0

        for migration_path in pending:
            await apply_migration(conn, migration_path)
        return len(pending)
    finally:
        await conn.close()


def main() -> None:
    """Main entry point."""
    settings = Settings()
    setup_logging(settings.LOG_LEVEL, json_format=settings.use_json_logs())

    asyncio.run(run_migrations(settings.DATABASE_URL))


if __name__ == "__main__":
    main()
