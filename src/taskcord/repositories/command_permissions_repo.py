"""
Repository for the command_permissions table.

Each row says a role is explicitly allowed or denied one slash command.
"""

from __future__ import annotations

from typing import Dict

import aiosqlite

from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.server_settings import CommandAccess, CommandPermission


class CommandPermissionsRepository:
    """CRUD for the command_permissions table."""

    async def get_for_guild(
        self, conn: aiosqlite.Connection, guild_id: GuildID
    ) -> Dict[str, CommandPermission]:
        async with conn.execute(
            "SELECT command, role_id, access FROM command_permissions WHERE guild_id = ?",
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()

        result: Dict[str, CommandPermission] = {}
        for command, role_id, access in rows:
            perm = result.setdefault(command, CommandPermission())
            if CommandAccess(access) is CommandAccess.ALLOW:
                perm.allowed_roles.add(role_id)
            else:
                perm.denied_roles.add(role_id)
        return result

    async def get_access(
        self, conn: aiosqlite.Connection, guild_id: GuildID, command: str, role_id: int
    ) -> CommandAccess | None:
        async with conn.execute(
            "SELECT access FROM command_permissions WHERE guild_id = ? AND command = ? AND role_id = ?",
            (int(guild_id), command, role_id),
        ) as cursor:
            row = await cursor.fetchone()
        return CommandAccess(row[0]) if row else None

    async def set_access(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        command: str,
        role_id: int,
        access: CommandAccess,
    ) -> None:
        """Allow or deny; a role sits in at most one list per command."""
        await conn.execute(
            """
            INSERT INTO command_permissions (guild_id, command, role_id, access)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(guild_id, command, role_id) DO UPDATE SET access = excluded.access
            """,
            (int(guild_id), command, role_id, access.value),
        )

    async def remove(
        self, conn: aiosqlite.Connection, guild_id: GuildID, command: str, role_id: int
    ) -> bool:
        cursor = await conn.execute(
            "DELETE FROM command_permissions WHERE guild_id = ? AND command = ? AND role_id = ?",
            (int(guild_id), command, role_id),
        )
        return cursor.rowcount > 0
