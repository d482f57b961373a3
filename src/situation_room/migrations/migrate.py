"""
Database Migration Runner

Applies the numbered SQL files of this package once each. Applied versions
are recorded in schema_migrations; every file runs in its own transaction
and the run stops at the first failing file.
"""
import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import asyncpg

from ..config import Config

logger = logging.getLogger("situation.migrations")

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_HISTORY = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version     TEXT PRIMARY KEY,
        applied_at  TIMESTAMP NOT NULL DEFAULT NOW()
    )
"""


def migration_files(directory: Path = MIGRATIONS_DIR) -> List[Path]:
    """SQL files in apply order"""
    return sorted(directory.glob("*.sql"))


def pending_migrations(files: Iterable[Path], applied: Iterable[str]) -> List[Path]:
    """Files whose name is not yet recorded as applied"""
    done = set(applied)
    return [f for f in files if f.name not in done]


async def apply_migrations(dsn: Optional[str] = None, directory: Path = MIGRATIONS_DIR) -> List[str]:
    """Apply pending migrations, return the names applied in this run"""
    conn = await asyncpg.connect(dsn or Config.get_postgres_dsn())
    try:
        await conn.execute(_CREATE_HISTORY)
        applied = [row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")]

        done = []
        for sql_file in pending_migrations(migration_files(directory), applied):
            logger.info(f"Applying migration {sql_file.name}")
            async with conn.transaction():
                await conn.execute(sql_file.read_text(encoding="utf-8"))
                await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", sql_file.name)
            done.append(sql_file.name)

        logger.info(f"Migrations up to date ({len(done)} applied, {len(applied)} already present)")
        return done
    finally:
        await conn.close()


def main():
    """Console entry point"""
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    try:
        asyncio.run(apply_migrations())
    except (OSError, asyncpg.PostgresError) as e:
        logger.error(f"Migration failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
