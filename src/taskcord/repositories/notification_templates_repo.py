"""
Repository for guild-specific template overrides (notification_templates).
"""

from __future__ import annotations

import json
from typing import List

import aiosqlite

from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.notification_datatypes import NotificationTemplate, NotificationType


class NotificationTemplatesRepository:
    async def list_for_guild(
        self, conn: aiosqlite.Connection, guild_id: GuildID
    ) -> List[NotificationTemplate]:
        async with conn.execute(
            """
            SELECT id, type, title, content, variables FROM notification_templates
            WHERE guild_id = ? ORDER BY id
            """,
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            NotificationTemplate(
                id=row[0],
                type=NotificationType(row[1]),
                title=row[2],
                content=row[3],
                variables=json.loads(row[4] or "[]"),
                guild_id=guild_id,
            )
            for row in rows
        ]

    async def upsert(
        self, conn: aiosqlite.Connection, guild_id: GuildID, template: NotificationTemplate
    ) -> None:
        await conn.execute(
            """
            INSERT INTO notification_templates (guild_id, id, type, title, content, variables)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(guild_id, id) DO UPDATE SET
                type      = excluded.type,
                title     = excluded.title,
                content   = excluded.content,
                variables = excluded.variables
            """,
            (
                int(guild_id),
                template.id,
                template.type.value,
                template.title,
                template.content,
                json.dumps(template.variables),
            ),
        )

    async def delete(self, conn: aiosqlite.Connection, guild_id: GuildID, template_id: str) -> bool:
        cursor = await conn.execute(
            "DELETE FROM notification_templates WHERE guild_id = ? AND id = ?",
            (int(guild_id), template_id),
        )
        return cursor.rowcount > 0

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        await conn.execute("DELETE FROM notification_templates WHERE guild_id = ?", (int(guild_id),))
