"""
Repository for permission_roles and permission_role_grants.
"""

from __future__ import annotations

from typing import Dict, Optional

import aiosqlite

from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.permission_datatypes import Permission, PermissionRole


class PermissionRolesRepository:
    """CRUD for permission roles and their grants."""

    async def get(
        self, conn: aiosqlite.Connection, guild_id: GuildID, role_id: int
    ) -> PermissionRole | None:
        async with conn.execute(
            "SELECT inherits_from FROM permission_roles WHERE guild_id = ? AND role_id = ?",
            (int(guild_id), role_id),
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None

        async with conn.execute(
            "SELECT permission FROM permission_role_grants WHERE guild_id = ? AND role_id = ?",
            (int(guild_id), role_id),
        ) as cursor:
            grants = await cursor.fetchall()

        return PermissionRole(
            guild_id=guild_id,
            role_id=role_id,
            permissions={Permission(g[0]) for g in grants},
            inherits_from=row[0],
        )

    async def get_for_guild(
        self, conn: aiosqlite.Connection, guild_id: GuildID
    ) -> Dict[int, PermissionRole]:
        """Every permission role of a guild in two queries, keyed by role id."""
        gid = int(guild_id)
        async with conn.execute(
            "SELECT role_id, inherits_from FROM permission_roles WHERE guild_id = ?", (gid,)
        ) as cursor:
            role_rows = await cursor.fetchall()
        result = {
            role_id: PermissionRole(guild_id=guild_id, role_id=role_id, inherits_from=parent)
            for role_id, parent in role_rows
        }

        async with conn.execute(
            "SELECT role_id, permission FROM permission_role_grants WHERE guild_id = ?", (gid,)
        ) as cursor:
            grant_rows = await cursor.fetchall()
        for role_id, permission in grant_rows:
            if role_id in result:
                result[role_id].permissions.add(Permission(permission))
        return result

    async def ensure_role(self, conn: aiosqlite.Connection, guild_id: GuildID, role_id: int) -> None:
        await conn.execute(
            "INSERT OR IGNORE INTO permission_roles (guild_id, role_id) VALUES (?, ?)",
            (int(guild_id), role_id),
        )

    async def add_grant(
        self, conn: aiosqlite.Connection, guild_id: GuildID, role_id: int, permission: Permission
    ) -> bool:
        await self.ensure_role(conn, guild_id, role_id)
        cursor = await conn.execute(
            "INSERT OR IGNORE INTO permission_role_grants (guild_id, role_id, permission) VALUES (?, ?, ?)",
            (int(guild_id), role_id, permission.value),
        )
        return cursor.rowcount > 0

    async def remove_grant(
        self, conn: aiosqlite.Connection, guild_id: GuildID, role_id: int, permission: Permission
    ) -> bool:
        cursor = await conn.execute(
            "DELETE FROM permission_role_grants WHERE guild_id = ? AND role_id = ? AND permission = ?",
            (int(guild_id), role_id, permission.value),
        )
        return cursor.rowcount > 0

    async def set_parent(
        self,
        conn: aiosqlite.Connection,
        guild_id: GuildID,
        role_id: int,
        parent_role_id: Optional[int],
    ) -> None:
        await self.ensure_role(conn, guild_id, role_id)
        await conn.execute(
            "UPDATE permission_roles SET inherits_from = ? WHERE guild_id = ? AND role_id = ?",
            (parent_role_id, int(guild_id), role_id),
        )

    async def delete_for_guild(self, conn: aiosqlite.Connection, guild_id: GuildID) -> None:
        await conn.execute("DELETE FROM permission_roles WHERE guild_id = ?", (int(guild_id),))
