"""
Repository for the config_values table.

Values are stored as JSON text next to their declared type.
"""

from __future__ import annotations

import json
from typing import List, Sequence

import aiosqlite

from taskcord.database.db_types import from_db_timestamp, optional_int, to_db_timestamp
from taskcord.datatypes.config_datatypes import ConfigValue, ConfigValueType
from taskcord.datatypes.discord_datatypes import GuildID, UserID


def _row_to_value(row: Sequence) -> ConfigValue:
    return ConfigValue(
        guild_id=GuildID.from_int(row[0]),
        key=row[1],
        value=json.loads(row[2]),
        type=ConfigValueType(row[3]),
        updated_by=UserID.from_int(row[4]) if row[4] is not None else None,
        updated_at=from_db_timestamp(row[5]),
    )


class ConfigValuesRepository:
    """CRUD for the config_values table."""

    async def get(
        self, conn: aiosqlite.Connection, guild_id: GuildID, key: str
    ) -> ConfigValue | None:
        async with conn.execute(
            """
            SELECT guild_id, key, value, type, updated_by, updated_at
            FROM config_values WHERE guild_id = ? AND key = ?
            """,
            (int(guild_id), key),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_value(row) if row else None

    async def list_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> List[ConfigValue]:
        async with conn.execute(
            """
            SELECT guild_id, key, value, type, updated_by, updated_at
            FROM config_values WHERE guild_id = ? ORDER BY key
            """,
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_value(row) for row in rows]

    async def upsert(self, conn: aiosqlite.Connection, value: ConfigValue) -> None:
        await conn.execute(
            """
            INSERT INTO config_values (guild_id, key, value, type, updated_by, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(guild_id, key) DO UPDATE SET
                value      = excluded.value,
                type       = excluded.type,
                updated_by = excluded.updated_by,
                updated_at = excluded.updated_at
            """,
            (
                int(value.guild_id),
                value.key,
                json.dumps(value.value),
                value.type.value,
                optional_int(value.updated_by),
                to_db_timestamp(value.updated_at),
            ),
        )

    async def delete(self, conn: aiosqlite.Connection, guild_id: GuildID, key: str) -> bool:
        cursor = await conn.execute(
            "DELETE FROM config_values WHERE guild_id = ? AND key = ?", (int(guild_id), key)
        )
        return cursor.rowcount > 0

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        await conn.execute("DELETE FROM config_values WHERE guild_id = ?", (int(guild_id),))
