"""
Repository for the server_role_assignments table (admin and manager roles).
"""

from __future__ import annotations

from typing import Dict, Set

import aiosqlite

from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.server_settings import RoleKind


class RoleAssignmentsRepository:
    """CRUD for the server_role_assignments table."""

    async def get_for_guild(
        self, conn: aiosqlite.Connection, guild_id: GuildID
    ) -> Dict[RoleKind, Set[int]]:
        result: Dict[RoleKind, Set[int]] = {kind: set() for kind in RoleKind}
        async with conn.execute(
            "SELECT role_id, kind FROM server_role_assignments WHERE guild_id = ?",
            (int(guild_id),),
        ) as cursor:
            rows = await cursor.fetchall()
        for role_id, kind in rows:
            result[RoleKind(kind)].add(role_id)
        return result

    async def replace(
        self, conn: aiosqlite.Connection, guild_id: GuildID, kind: RoleKind, role_ids: Set[int]
    ) -> None:
        """Replace every role of one kind for a guild."""
        gid = int(guild_id)
        await conn.execute(
            "DELETE FROM server_role_assignments WHERE guild_id = ? AND kind = ?",
            (gid, kind.value),
        )
        if role_ids:
            await conn.executemany(
                "INSERT INTO server_role_assignments (guild_id, role_id, kind) VALUES (?, ?, ?)",
                [(gid, rid, kind.value) for rid in sorted(role_ids)],
            )
