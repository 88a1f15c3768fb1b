"""
Marie Reconciliation - Database Management

PURPOSE: Schema versioning and the key/value persistence port
SCOPE: SQLite operations and the in-memory stand-in used by tests
DEPENDENCIES: aiosqlite
"""

import aiosqlite
import logging
from datetime import datetime
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Handles database creation and migrations."""

    def __init__(self, db_file: str):
        self.db_file = db_file

    async def initialize_database(self) -> None:
        """Initialize SQLite database with proper schema and migrations."""
        async with aiosqlite.connect(self.db_file) as conn:
            await self._setup_schema_versioning(conn)
            current_version = await self._get_current_schema_version(conn)
            logger.info(f"Current database schema version: {current_version}")

            if current_version < 1:
                await self._migrate_to_version_1(conn)

            await conn.commit()

    async def _setup_schema_versioning(self, conn: aiosqlite.Connection) -> None:
        """Set up schema version tracking table."""
        await conn.execute('''
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

    async def _get_current_schema_version(self, conn: aiosqlite.Connection) -> int:
        """Get the current database schema version."""
        cursor = await conn.execute('SELECT MAX(version) FROM schema_version')
        result = await cursor.fetchone()
        return result[0] or 0

    async def _migrate_to_version_1(self, conn: aiosqlite.Connection) -> None:
        """Migrate database to version 1 with the key/value record table."""
        logger.info("Migrating to schema version 1: Adding kv_store table")

        await conn.execute('''
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_on TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        await conn.execute('INSERT INTO schema_version (version) VALUES (1)')
        logger.info("Schema migration to version 1 completed")


class SqliteStorage:
    """Persistence port backed by the ``kv_store`` table.

    Each record is a whole JSON document stored under a fixed key; writes
    always replace the full value.
    """

    def __init__(self, db_file: str):
        self.db_file = db_file

    async def initialize(self) -> None:
        await DatabaseManager(self.db_file).initialize_database()

    async def read(self, key: str) -> Optional[str]:
        async with aiosqlite.connect(self.db_file) as conn:
            cursor = await conn.execute('SELECT value FROM kv_store WHERE key = ?', (key,))
            row = await cursor.fetchone()
            return row[0] if row else None

    async def write(self, key: str, value: str) -> None:
        async with aiosqlite.connect(self.db_file) as conn:
            await conn.execute(
                'INSERT OR REPLACE INTO kv_store (key, value, updated_on) VALUES (?, ?, ?)',
                (key, value, datetime.now().isoformat())
            )
            await conn.commit()


class MemoryStorage:
    """Persistence port kept in a dict; used by tests and throwaway runs."""

    def __init__(self, records: Optional[Dict[str, str]] = None):
        self.records = dict(records or {})

    async def initialize(self) -> None:
        pass

    async def read(self, key: str) -> Optional[str]:
        return self.records.get(key)

    async def write(self, key: str, value: str) -> None:
        self.records[key] = value
