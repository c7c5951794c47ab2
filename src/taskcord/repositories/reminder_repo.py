"""
Repository for the reminder_schedules table. One schedule per task.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Sequence

import aiosqlite

from taskcord.database.db_types import from_db_timestamp, to_db_timestamp
from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.notification_datatypes import ReminderFrequency, ReminderSchedule

_COLUMNS = "id, task_id, guild_id, frequency, next_reminder, last_sent, interval_minutes"


def _row_to_schedule(row: Sequence) -> ReminderSchedule:
    return ReminderSchedule(
        id=row[0],
        task_id=row[1],
        guild_id=GuildID.from_int(row[2]),
        frequency=ReminderFrequency(row[3]),
        next_reminder=from_db_timestamp(row[4]),
        last_sent=from_db_timestamp(row[5]),
        interval_minutes=row[6],
    )


class ReminderRepository:
    async def upsert(self, conn: aiosqlite.Connection, schedule: ReminderSchedule) -> None:
        """Create the task's schedule or replace the existing one."""
        await conn.execute(
            """
            INSERT INTO reminder_schedules (task_id, guild_id, frequency, next_reminder, last_sent, interval_minutes)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(task_id) DO UPDATE SET
                frequency        = excluded.frequency,
                next_reminder    = excluded.next_reminder,
                last_sent        = excluded.last_sent,
                interval_minutes = excluded.interval_minutes
            """,
            (
                schedule.task_id,
                int(schedule.guild_id),
                schedule.frequency.value,
                to_db_timestamp(schedule.next_reminder),
                to_db_timestamp(schedule.last_sent),
                schedule.interval_minutes,
            ),
        )

    async def get_for_task(self, conn: aiosqlite.Connection, task_id: int) -> ReminderSchedule | None:
        async with conn.execute(
            f"SELECT {_COLUMNS} FROM reminder_schedules WHERE task_id = ?", (task_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_schedule(row) if row else None

    async def get_due(
        self, conn: aiosqlite.Connection, now: datetime, limit: int = 100
    ) -> List[ReminderSchedule]:
        async with conn.execute(
            f"""
            SELECT {_COLUMNS} FROM reminder_schedules
            WHERE next_reminder <= ?
            ORDER BY next_reminder
            LIMIT ?
            """,
            (to_db_timestamp(now), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_schedule(row) for row in rows]

    async def delete_for_task(self, conn: aiosqlite.Connection, task_id: int) -> bool:
        cursor = await conn.execute("DELETE FROM reminder_schedules WHERE task_id = ?", (task_id,))
        return cursor.rowcount > 0

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        await conn.execute("DELETE FROM reminder_schedules WHERE guild_id = ?", (int(guild_id),))
