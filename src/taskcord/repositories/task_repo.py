"""
Repository for the tasks table.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence

import aiosqlite

from taskcord.database.db_types import from_db_timestamp, optional_int, to_db_timestamp
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.task_datatypes import (
    ACTIVE_STATUSES,
    Task,
    TaskPriority,
    TaskStatus,
)

_COLUMNS = """
    id, guild_id, title, description, assignee_id, created_by, status,
    priority, category, deadline, completed_at, reminder_frequency,
    created_at, updated_at
"""

_PRIORITY_SORT = """
    CASE priority WHEN 'URGENT' THEN 0 WHEN 'HIGH' THEN 1
                  WHEN 'MEDIUM' THEN 2 ELSE 3 END
"""


def _row_to_task(row: Sequence) -> Task:
    return Task(
        id=row[0],
        guild_id=GuildID.from_int(row[1]),
        title=row[2],
        description=row[3] or "",
        assignee_id=UserID.from_int(row[4]) if row[4] is not None else None,
        created_by=UserID.from_int(row[5]),
        status=TaskStatus(row[6]),
        priority=TaskPriority(row[7]),
        category=row[8],
        deadline=from_db_timestamp(row[9]),
        completed_at=from_db_timestamp(row[10]),
        reminder_frequency=row[11],
        created_at=from_db_timestamp(row[12]),
        updated_at=from_db_timestamp(row[13]),
    )


class TaskRepository:
    """CRUD and queries for the tasks table."""

    async def insert(self, conn: aiosqlite.Connection, task: Task) -> int:
        """Insert a task and return its new id."""
        cursor = await conn.execute(
            """
            INSERT INTO tasks (
                guild_id, title, description, assignee_id, created_by, status,
                priority, category, deadline, completed_at, reminder_frequency,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(task.guild_id),
                task.title,
                task.description,
                optional_int(task.assignee_id),
                int(task.created_by),
                task.status.value,
                task.priority.value,
                task.category,
                to_db_timestamp(task.deadline),
                to_db_timestamp(task.completed_at),
                task.reminder_frequency,
                to_db_timestamp(task.created_at),
                to_db_timestamp(task.updated_at),
            ),
        )
        return cursor.lastrowid

    async def get(
        self, conn: aiosqlite.Connection, guild_id: GuildID, task_id: int
    ) -> Task | None:
        """Fetch a task; tasks belonging to another guild are not returned."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE id = ? AND guild_id = ?",
            (task_id, int(guild_id)),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_task(row) if row else None

    async def get_by_id(self, conn: aiosqlite.Connection, task_id: int) -> Task | None:
        """Unscoped lookup, used by background jobs that only hold a task id."""
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_task(row) if row else None

    async def update(self, conn: aiosqlite.Connection, task: Task) -> None:
        await conn.execute(
            """
            UPDATE tasks SET
                title = ?, description = ?, assignee_id = ?, status = ?,
                priority = ?, category = ?, deadline = ?, completed_at = ?,
                reminder_frequency = ?, updated_at = ?
            WHERE id = ? AND guild_id = ?
            """,
            (
                task.title,
                task.description,
                optional_int(task.assignee_id),
                task.status.value,
                task.priority.value,
                task.category,
                to_db_timestamp(task.deadline),
                to_db_timestamp(task.completed_at),
                task.reminder_frequency,
                to_db_timestamp(task.updated_at),
                task.id,
                int(task.guild_id),
            ),
        )

    async def delete(self, conn: aiosqlite.Connection, guild_id: GuildID, task_id: int) -> bool:
        cursor = await conn.execute(
            "DELETE FROM tasks WHERE id = ? AND guild_id = ?", (task_id, int(guild_id))
        )
        return cursor.rowcount > 0

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> int:
        cursor = await conn.execute("DELETE FROM tasks WHERE guild_id = ?", (int(guild_id),))
        return cursor.rowcount

    async def list_for_guild(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        status: Optional[TaskStatus] = None,
        assignee_id: Optional[UserID] = None,
        include_closed: bool = False,
        limit: int = 100,
    ) -> List[Task]:
        """
        List a guild's tasks, most urgent first.

        Without an explicit ``status`` only active tasks are returned unless
        ``include_closed`` is set.
        """
        clauses = ["guild_id = ?"]
        params: list = [int(guild_id)]
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        elif not include_closed:
            placeholders = ",".join("?" * len(ACTIVE_STATUSES))
            clauses.append(f"status IN ({placeholders})")
            params.extend(sorted(s.value for s in ACTIVE_STATUSES))
        if assignee_id is not None:
            clauses.append("assignee_id = ?")
            params.append(int(assignee_id))
        params.append(limit)

        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE {' AND '.join(clauses)}
            ORDER BY {_PRIORITY_SORT}, deadline IS NULL, deadline, id
            LIMIT ?
            """,
            params,
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_task(row) for row in rows]

    async def count_active_for_assignee(
        self, conn: aiosqlite.Connection, guild_id: GuildID, assignee_id: UserID
    ) -> int:
        placeholders = ",".join("?" * len(ACTIVE_STATUSES))
        async with conn.execute(
            f"""
            SELECT COUNT(*) FROM tasks
            WHERE guild_id = ? AND assignee_id = ? AND status IN ({placeholders})
            """,
            (int(guild_id), int(assignee_id), *sorted(s.value for s in ACTIVE_STATUSES)),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def get_pending_past_deadline(
        self, conn: aiosqlite.Connection, guild_id: GuildID, now: datetime
    ) -> List[Task]:
        """PENDING tasks whose deadline has passed; candidates for OVERDUE."""
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE guild_id = ? AND status = 'PENDING'
              AND deadline IS NOT NULL AND deadline < ?
            ORDER BY deadline
            """,
            (int(guild_id), to_db_timestamp(now)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_task(row) for row in rows]

    async def get_overdue(
        self, conn: aiosqlite.Connection, guild_id: GuildID, now: datetime
    ) -> List[Task]:
        """Tasks marked OVERDUE plus active tasks whose deadline has passed."""
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE guild_id = ?
              AND (status = 'OVERDUE'
                   OR (status IN ('PENDING', 'IN_PROGRESS')
                       AND deadline IS NOT NULL AND deadline < ?))
            ORDER BY deadline
            """,
            (int(guild_id), to_db_timestamp(now)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_task(row) for row in rows]

    async def get_guild_ids_with_open_deadlines(self, conn: aiosqlite.Connection) -> List[int]:
        async with conn.execute(
            "SELECT DISTINCT guild_id FROM tasks WHERE status = 'PENDING' AND deadline IS NOT NULL"
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]
