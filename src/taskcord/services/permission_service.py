"""
PermissionService: role-based permissions with single-parent inheritance.

A role's effective permissions are its own grants plus those of every role
above it in its ``inherits_from`` chain. The walk stops at a missing role or
at a role it has already visited, so a cycle that slipped into the table
cannot loop forever. New cycles are rejected when inheritance is set.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Set

import discord

from taskcord.configuration.app_configuration import app_config
from taskcord.database.cache_aside import CacheAside
from taskcord.database.db_cache import KeyValueCache, kv_cache
from taskcord.database.db_connection import ConnectionManager, db_connection
from taskcord.datatypes.config_datatypes import AuditAction, AuditLogEntry, ConfigPermissionLevel
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.permission_datatypes import COMMAND_PERMISSIONS, Permission, PermissionRole
from taskcord.datatypes.server_settings import ServerSettings
from taskcord.errors import ConfigValidationError, PermissionDeniedError
from taskcord.repositories import AuditLogRepository, PermissionRolesRepository
from taskcord.services.server_settings_service import (
    ServerSettingsService,
    normalize_command_name,
    server_settings_service,
)
from taskcord.util.logger import get_logger

logger = get_logger("permission_service")

RoleMap = Dict[int, PermissionRole]


def _encode_roles(roles: RoleMap) -> list:
    return [
        {
            "guild_id": str(role.guild_id),
            "role_id": role_id,
            "permissions": sorted(p.value for p in role.permissions),
            "inherits_from": role.inherits_from,
        }
        for role_id, role in roles.items()
    ]


def _decode_roles(data: list) -> RoleMap:
    return {
        entry["role_id"]: PermissionRole(
            guild_id=GuildID(entry["guild_id"]),
            role_id=entry["role_id"],
            permissions={Permission(p) for p in entry["permissions"]},
            inherits_from=entry["inherits_from"],
        )
        for entry in data
    }


def resolve_from_roles(roles: RoleMap, role_id: int) -> Set[Permission]:
    """Union of grants along the inheritance chain starting at ``role_id``."""
    resolved: Set[Permission] = set()
    visited: Set[int] = set()
    current: Optional[int] = role_id
    while current is not None and current not in visited:
        visited.add(current)
        role = roles.get(current)
        if role is None:
            break
        resolved |= role.permissions
        current = role.inherits_from
    if current is not None and current in visited:
        logger.warning("[PERMISSION SERVICE] Inheritance cycle detected at role %s", current)
    return resolved


class PermissionService:
    def __init__(
        self,
        db: ConnectionManager = db_connection,
        cache: KeyValueCache = kv_cache,
        settings_service: ServerSettingsService = server_settings_service,
        cache_enabled: Optional[bool] = None,
    ) -> None:
        self._db = db
        self._settings = settings_service
        self._roles_repo = PermissionRolesRepository()
        self._audit_repo = AuditLogRepository()
        self._cache: CacheAside[RoleMap] = CacheAside(
            cache,
            "permissions",
            encode=_encode_roles,
            decode=_decode_roles,
            enabled=app_config.cache_enabled if cache_enabled is None else cache_enabled,
        )

    async def _roles(self, guild_id: GuildID) -> RoleMap:
        async def load() -> RoleMap:
            async with self._db.read() as conn:
                return await self._roles_repo.get_for_guild(conn, guild_id)

        return await self._cache.get_or_load(self._cache.key(guild_id), load)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_permissions(self, guild_id: GuildID, role_id: int) -> Set[Permission]:
        return resolve_from_roles(await self._roles(guild_id), role_id)

    async def get_member_permissions(self, guild_id: GuildID, role_ids: Iterable[int]) -> Set[Permission]:
        roles = await self._roles(guild_id)
        result: Set[Permission] = set()
        for role_id in role_ids:
            result |= resolve_from_roles(roles, role_id)
        return result

    async def has_permission(self, guild_id: GuildID, role_ids: Iterable[int], permission: Permission) -> bool:
        return permission in await self.get_member_permissions(guild_id, role_ids)

    async def get_role(self, guild_id: GuildID, role_id: int) -> PermissionRole | None:
        return (await self._roles(guild_id)).get(role_id)

    async def list_roles(self, guild_id: GuildID) -> RoleMap:
        return dict(await self._roles(guild_id))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def _audit(self, conn, guild_id, key, action, old, new, changed_by) -> None:
        await self._audit_repo.insert(
            conn,
            AuditLogEntry(
                guild_id=guild_id, key=key, action=action,
                old_value=old, new_value=new, changed_by=changed_by,
            ),
        )

    async def grant(
        self, guild_id: GuildID, role_id: int, permission: Permission, granted_by: Optional[UserID]
    ) -> bool:
        """Returns False when the role already had the grant."""
        async with self._db.transaction() as conn:
            added = await self._roles_repo.add_grant(conn, guild_id, role_id, permission)
            if added:
                await self._audit(conn, guild_id, f"role.{role_id}.{permission.value}",
                                  AuditAction.CREATE, None, True, granted_by)
        self._cache.invalidate(guild_id)
        if added:
            logger.info("[PERMISSION SERVICE] Guild %s granted %s to role %s", guild_id, permission.value, role_id)
        return added

    async def revoke(
        self, guild_id: GuildID, role_id: int, permission: Permission, revoked_by: Optional[UserID]
    ) -> bool:
        """Returns False when the role did not have the grant."""
        async with self._db.transaction() as conn:
            removed = await self._roles_repo.remove_grant(conn, guild_id, role_id, permission)
            if removed:
                await self._audit(conn, guild_id, f"role.{role_id}.{permission.value}",
                                  AuditAction.DELETE, True, None, revoked_by)
        self._cache.invalidate(guild_id)
        return removed

    async def set_inheritance(
        self,
        guild_id: GuildID,
        role_id: int,
        parent_role_id: Optional[int],
        updated_by: Optional[UserID],
    ) -> None:
        """
        Make ``role_id`` inherit from ``parent_role_id`` (None clears it).

        Raises:
            ConfigValidationError: self-inheritance or a resulting cycle.
        """
        if parent_role_id == role_id:
            raise ConfigValidationError("A role cannot inherit from itself")

        async with self._db.transaction() as conn:
            roles = await self._roles_repo.get_for_guild(conn, guild_id)
            if parent_role_id is not None:
                seen: Set[int] = set()
                current: Optional[int] = parent_role_id
                while current is not None and current not in seen:
                    if current == role_id:
                        raise ConfigValidationError(
                            f"Role {role_id} cannot inherit from {parent_role_id}: that would create a cycle"
                        )
                    seen.add(current)
                    current = roles[current].inherits_from if current in roles else None
                await self._roles_repo.ensure_role(conn, guild_id, parent_role_id)

            old = roles[role_id].inherits_from if role_id in roles else None
            await self._roles_repo.set_parent(conn, guild_id, role_id, parent_role_id)
            await self._audit(conn, guild_id, f"role.{role_id}.inherits_from",
                              AuditAction.UPDATE if old is not None else AuditAction.CREATE,
                              old, parent_role_id, updated_by)
        self._cache.invalidate(guild_id)

    # ------------------------------------------------------------------
    # Discord members
    # ------------------------------------------------------------------

    async def config_permission_level(
        self, member: discord.Member, settings: ServerSettings
    ) -> ConfigPermissionLevel:
        """
        ADMIN for administrators, ``manage_guild`` holders, admin roles and
        ``config.admin`` grants; WRITE for manager roles and ``config.write``
        grants; READ for everyone else.
        """
        perms = member.guild_permissions
        if perms.administrator or perms.manage_guild:
            return ConfigPermissionLevel.ADMIN

        role_ids = [role.id for role in member.roles]
        if any(settings.has_admin_role(rid) for rid in role_ids):
            return ConfigPermissionLevel.ADMIN

        granted = await self.get_member_permissions(settings.guild_id, role_ids)
        if Permission.CONFIG_ADMIN in granted:
            return ConfigPermissionLevel.ADMIN
        if Permission.CONFIG_WRITE in granted or any(settings.has_manager_role(rid) for rid in role_ids):
            return ConfigPermissionLevel.WRITE
        return ConfigPermissionLevel.READ

    async def can_use_command(
        self, guild_id: GuildID, member: discord.Member, command: str, default: bool
    ) -> bool:
        """
        Decide whether ``member`` may run ``command``.

        Order: an explicitly denied role, an explicitly allowed role, an
        inherited permission grant, then ``default``.
        """
        command = normalize_command_name(command)
        settings = await self._settings.get(guild_id)
        role_ids = {role.id for role in member.roles}

        override = settings.command_permissions.get(command)
        if override is not None:
            if role_ids & override.denied_roles:
                return False
            if role_ids & override.allowed_roles:
                return True

        required = COMMAND_PERMISSIONS.get(command)
        if required is not None and await self.has_permission(guild_id, role_ids, required):
            return True
        return default

    async def require_command(
        self,
        guild_id: GuildID,
        member: discord.Member,
        command: str,
        default: bool,
        message: Optional[str] = None,
    ) -> None:
        """Raise :class:`PermissionDeniedError` unless :meth:`can_use_command` allows it."""
        if not await self.can_use_command(guild_id, member, command, default):
            logger.debug("[PERMISSION SERVICE] %s denied /%s in guild %s", member.id, command, guild_id)
            raise PermissionDeniedError(normalize_command_name(command), message)


permission_service = PermissionService()
