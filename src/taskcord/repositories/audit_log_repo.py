"""
Repository for the append-only config_audit_log table.
"""

from __future__ import annotations

import json
from typing import List, Optional

import aiosqlite

from taskcord.database.db_types import from_db_timestamp, optional_int, to_db_timestamp
from taskcord.datatypes.config_datatypes import AuditAction, AuditLogEntry
from taskcord.datatypes.discord_datatypes import GuildID, UserID


def _dump(value) -> Optional[str]:
    return None if value is None else json.dumps(value, default=str)


def _load(value: Optional[str]):
    return None if value is None else json.loads(value)


class AuditLogRepository:
    """Insert and query audit entries. Rows are never updated."""

    async def insert(self, conn: aiosqlite.Connection, entry: AuditLogEntry) -> int:
        cursor = await conn.execute(
            """
            INSERT INTO config_audit_log
                (guild_id, key, action, old_value, new_value, changed_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(entry.guild_id),
                entry.key,
                entry.action.value,
                _dump(entry.old_value),
                _dump(entry.new_value),
                optional_int(entry.changed_by),
                to_db_timestamp(entry.created_at),
            ),
        )
        return cursor.lastrowid

    async def list_for_guild(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        key: Optional[str] = None,
        limit: int = 10,
    ) -> List[AuditLogEntry]:
        """Newest first."""
        sql = """
            SELECT id, guild_id, key, action, old_value, new_value, changed_by, created_at
            FROM config_audit_log WHERE guild_id = ?
        """
        params: list = [int(guild_id)]
        if key is not None:
            sql += " AND key = ?"
            params.append(key)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)

        async with conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()

        return [
            AuditLogEntry(
                id=row[0],
                guild_id=GuildID.from_int(row[1]),
                key=row[2],
                action=AuditAction(row[3]),
                old_value=_load(row[4]),
                new_value=_load(row[5]),
                changed_by=UserID.from_int(row[6]) if row[6] is not None else None,
                created_at=from_db_timestamp(row[7]),
            )
            for row in rows
        ]

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        await conn.execute("DELETE FROM config_audit_log WHERE guild_id = ?", (int(guild_id),))
