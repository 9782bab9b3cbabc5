"""
Action log storage and queries.

Every ban, kick and redaction the warden issues (or skips in no-op mode) is
appended to ``moderation_actions``.
"""

from typing import List

import aiosqlite

from modwarden.datatypes.action_datatypes import ActionData, ActionType
from modwarden.database.db_connection import ConnectionManager
from modwarden.util.logger import get_logger

logger = get_logger("database_moderation")


def _row_to_action(row: aiosqlite.Row) -> ActionData:
    event_ids = [event_id for event_id in (row["event_ids"] or "").split(",") if event_id]
    return ActionData(
        room_id=row["room_id"],
        user_id=row["user_id"],
        action=ActionType(row["action"]),
        reason=row["reason"],
        source=row["source"],
        event_ids=event_ids,
        noop=bool(row["noop"]),
    )


class ModerationActions:
    """Writes and reads the action log."""

    def __init__(self, connection: ConnectionManager) -> None:
        self._connection = connection

    async def log_action(self, action: ActionData) -> None:
        async with self._connection.transaction() as db:
            await db.execute(
                """
                INSERT INTO moderation_actions (room_id, user_id, action, reason, source, event_ids, noop)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    action.room_id,
                    action.user_id,
                    action.action.value,
                    action.reason,
                    action.source,
                    ",".join(action.event_ids),
                    int(action.noop),
                ),
            )

        logger.debug(
            "[MODERATION] Logged action: %s on user %s in room %s (source %s)",
            action.action.value,
            action.user_id,
            action.room_id,
            action.source,
        )

    async def get_recent_actions(self, limit: int = 50) -> List[ActionData]:
        """Most recent actions first."""
        cursor = await self._connection.connection.execute(
            "SELECT * FROM moderation_actions ORDER BY id DESC LIMIT ?", (limit,)
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [_row_to_action(row) for row in rows]

    async def get_actions_for_user(self, user_id: str, limit: int = 50) -> List[ActionData]:
        cursor = await self._connection.connection.execute(
            "SELECT * FROM moderation_actions WHERE user_id = ? ORDER BY id DESC LIMIT ?", (user_id, limit)
        )
        rows = await cursor.fetchall()
        await cursor.close()
        return [_row_to_action(row) for row in rows]

    async def cleanup_old_actions(self, days_to_keep: int = 30) -> int:
        """Delete actions older than ``days_to_keep`` days; return how many."""
        async with self._connection.transaction() as db:
            cursor = await db.execute(
                "DELETE FROM moderation_actions WHERE created_at < datetime('now', ?)",
                (f"-{int(days_to_keep)} days",),
            )
            deleted = cursor.rowcount
        logger.info("[MODERATION] Cleaned up %d old action(s)", deleted)
        return deleted
