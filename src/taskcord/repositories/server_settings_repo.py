"""
Repository for the core server_settings table.

Handles only the server_settings table; role assignments, categories and
command permissions live in their own repositories.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

import aiosqlite

from taskcord.datatypes.discord_datatypes import GuildID


@dataclass
class ServerSettingsRow:
    """Raw DB row for a server's scalar settings."""
    guild_id: int
    default_reminder_frequency: int
    default_task_priority: str
    timezone: str
    notification_channel_id: int | None
    max_tasks_per_user: int
    enabled_features: Dict[str, Any] = field(default_factory=dict)


class ServerSettingsRepository:
    """CRUD for the server_settings table only."""

    async def get(
        self, conn: aiosqlite.Connection, guild_id: GuildID
    ) -> ServerSettingsRow | None:
        async with conn.execute(
            """
            SELECT guild_id, default_reminder_frequency, default_task_priority,
                   timezone, notification_channel_id, max_tasks_per_user,
                   enabled_features
            FROM server_settings
            WHERE guild_id = ?
            """,
            (int(guild_id),),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None

        return ServerSettingsRow(
            guild_id=row[0],
            default_reminder_frequency=row[1],
            default_task_priority=row[2],
            timezone=row[3],
            notification_channel_id=row[4],
            max_tasks_per_user=row[5],
            enabled_features=json.loads(row[6] or "{}"),
        )

    async def get_guild_ids(self, conn: aiosqlite.Connection) -> List[int]:
        async with conn.execute("SELECT guild_id FROM server_settings") as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, row: ServerSettingsRow) -> None:
        await conn.execute(
            """
            INSERT INTO server_settings (
                guild_id, default_reminder_frequency, default_task_priority,
                timezone, notification_channel_id, max_tasks_per_user,
                enabled_features
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(guild_id) DO UPDATE SET
                default_reminder_frequency = excluded.default_reminder_frequency,
                default_task_priority      = excluded.default_task_priority,
                timezone                   = excluded.timezone,
                notification_channel_id    = excluded.notification_channel_id,
                max_tasks_per_user         = excluded.max_tasks_per_user,
                enabled_features           = excluded.enabled_features
            """,
            (
                row.guild_id,
                row.default_reminder_frequency,
                row.default_task_priority,
                row.timezone,
                row.notification_channel_id,
                row.max_tasks_per_user,
                json.dumps(row.enabled_features, sort_keys=True),
            ),
        )

    async def delete(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        """Delete a server row (CASCADE removes roles, categories and command permissions)."""
        await conn.execute(
            "DELETE FROM server_settings WHERE guild_id = ?", (int(guild_id),)
        )
