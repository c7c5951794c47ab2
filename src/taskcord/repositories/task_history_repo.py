"""
Repository for the task_status_history table.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from taskcord.database.db_types import from_db_timestamp, optional_int, to_db_timestamp
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.task_datatypes import TaskStatus, TaskStatusChange


class TaskHistoryRepository:
    """Append-only status history rows."""

    async def insert(self, conn: aiosqlite.Connection, change: TaskStatusChange) -> int:
        cursor = await conn.execute(
            """
            INSERT INTO task_status_history
                (task_id, guild_id, from_status, to_status, changed_by, changed_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                change.task_id,
                int(change.guild_id),
                change.from_status.value if change.from_status else None,
                change.to_status.value,
                optional_int(change.changed_by),
                to_db_timestamp(change.changed_at),
            ),
        )
        return cursor.lastrowid

    async def list_for_task(
        self, conn: aiosqlite.Connection, guild_id: GuildID, task_id: int, limit: int = 25
    ) -> List[TaskStatusChange]:
        """Oldest first."""
        async with conn.execute(
            """
            SELECT id, task_id, guild_id, from_status, to_status, changed_by, changed_at
            FROM task_status_history
            WHERE task_id = ? AND guild_id = ?
            ORDER BY changed_at, id
            LIMIT ?
            """,
            (task_id, int(guild_id), limit),
        ) as cursor:
            rows = await cursor.fetchall()

        return [
            TaskStatusChange(
                id=row[0],
                task_id=row[1],
                guild_id=GuildID.from_int(row[2]),
                from_status=TaskStatus(row[3]) if row[3] else None,
                to_status=TaskStatus(row[4]),
                changed_by=UserID.from_int(row[5]) if row[5] is not None else None,
                changed_at=from_db_timestamp(row[6]),
            )
            for row in rows
        ]
