"""
Repository for the notification_preferences table.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from taskcord.database.db_types import to_db_bool
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.notification_datatypes import NotificationPreference, NotificationType


class NotificationPreferencesRepository:
    async def get(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        user_id: UserID,
        notification_type: NotificationType,
    ) -> NotificationPreference | None:
        async with conn.execute(
            """
            SELECT enabled, mention_user FROM notification_preferences
            WHERE guild_id = ? AND user_id = ? AND type = ?
            """,
            (int(guild_id), int(user_id), notification_type.value),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return NotificationPreference(
            guild_id=guild_id,
            user_id=user_id,
            type=notification_type,
            enabled=bool(row[0]),
            mention_user=bool(row[1]),
        )

    async def list_for_user(
        self, conn: aiosqlite.Connection, guild_id: GuildID, user_id: UserID
    ) -> List[NotificationPreference]:
        async with conn.execute(
            """
            SELECT type, enabled, mention_user FROM notification_preferences
            WHERE guild_id = ? AND user_id = ? ORDER BY type
            """,
            (int(guild_id), int(user_id)),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            NotificationPreference(
                guild_id=guild_id,
                user_id=user_id,
                type=NotificationType(row[0]),
                enabled=bool(row[1]),
                mention_user=bool(row[2]),
            )
            for row in rows
        ]

    async def upsert(self, conn: aiosqlite.Connection, pref: NotificationPreference) -> None:
        await conn.execute(
            """
            INSERT INTO notification_preferences (guild_id, user_id, type, enabled, mention_user)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(guild_id, user_id, type) DO UPDATE SET
                enabled      = excluded.enabled,
                mention_user = excluded.mention_user
            """,
            (
                int(pref.guild_id),
                int(pref.user_id),
                pref.type.value,
                to_db_bool(pref.enabled),
                to_db_bool(pref.mention_user),
            ),
        )

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        await conn.execute("DELETE FROM notification_preferences WHERE guild_id = ?", (int(guild_id),))
