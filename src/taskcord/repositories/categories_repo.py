"""
Repository for the server_categories table.
"""

from __future__ import annotations

from typing import List

import aiosqlite

from taskcord.datatypes.discord_datatypes import GuildID


class CategoriesRepository:
    """CRUD for the server_categories table."""

    async def get_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> List[str]:
        """Categories in the order they were added."""
        async with conn.execute(
            "SELECT name FROM server_categories WHERE guild_id = ? ORDER BY position, name",
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def replace(
        self, conn: aiosqlite.Connection, guild_id: GuildID, categories: List[str]
    ) -> None:
        gid = int(guild_id)
        await conn.execute("DELETE FROM server_categories WHERE guild_id = ?", (gid,))
        if categories:
            await conn.executemany(
                "INSERT INTO server_categories (guild_id, name, position) VALUES (?, ?, ?)",
                [(gid, name, position) for position, name in enumerate(categories)],
            )
