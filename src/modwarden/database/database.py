"""
Database coordinator for the action log.

The :class:`Database` owns the connection, creates the schema and exposes the
action log operations. It satisfies the ``ActionLog`` protocol the
:class:`~modwarden.moderation.enforcement.Enforcer` writes to.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from modwarden.datatypes.action_datatypes import ActionData
from modwarden.database.db_connection import ConnectionManager
from modwarden.database.db_schema import SchemaManager
from modwarden.database.moderation import ModerationActions
from modwarden.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/modwarden.db").resolve()


class Database:
    """
    Central coordinator for database operations.

    Lifecycle:
        1. ``await initialize()`` at startup
        2. log and query actions
        3. ``await shutdown()`` at exit
    """

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = db_path
        self._connection = ConnectionManager()
        self._moderation = ModerationActions(self._connection)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self._connection.open(self.db_path)
            await SchemaManager.initialize_schema(self._connection.connection)
        except Exception as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            await self._connection.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self._connection.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")

    async def log_action(self, action: ActionData) -> None:
        await self._moderation.log_action(action)

    async def get_recent_actions(self, limit: int = 50) -> List[ActionData]:
        return await self._moderation.get_recent_actions(limit)

    async def get_actions_for_user(self, user_id: str, limit: int = 50) -> List[ActionData]:
        return await self._moderation.get_actions_for_user(user_id, limit)

    async def cleanup_old_actions(self, days_to_keep: int = 30) -> int:
        return await self._moderation.cleanup_old_actions(days_to_keep)
