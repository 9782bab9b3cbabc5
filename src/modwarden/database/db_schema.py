"""
Database schema initialization.

Creates the action log table, its indexes and the schema version record.
"""

import aiosqlite
from modwarden.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                room_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                action TEXT NOT NULL,
                reason TEXT NOT NULL DEFAULT '',
                source TEXT NOT NULL DEFAULT '',
                event_ids TEXT NOT NULL DEFAULT '',
                noop INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_actions_room_user ON moderation_actions(room_id, user_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_actions_created ON moderation_actions(created_at)"
        )

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
