"""
ServerSettingsService: cached, audited access to per-server settings.

Responsibilities:
- Load a server's settings through the cache (defaults when never saved)
- Persist changes atomically across the settings repositories
- Write one audit entry per changed value
- Purge everything a server owns when the bot leaves it

A server with no row uses default settings; the row is only written on the
first change.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from taskcord.configuration.app_configuration import app_config
from taskcord.database.cache_aside import CacheAside
from taskcord.database.db_cache import KeyValueCache, kv_cache
from taskcord.database.db_connection import ConnectionManager, db_connection
from taskcord.datatypes.config_datatypes import AuditAction, AuditLogEntry
from taskcord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from taskcord.datatypes.server_settings import (
    EDITABLE_SETTINGS,
    FEATURE_NAMES,
    CommandAccess,
    RoleKind,
    ServerSettings,
)
from taskcord.datatypes.task_datatypes import TaskPriority
from taskcord.errors import ConfigValidationError
from taskcord.repositories import (
    AuditLogRepository,
    CategoriesRepository,
    CommandPermissionsRepository,
    ConfigValuesRepository,
    NotificationPreferencesRepository,
    NotificationTemplatesRepository,
    PermissionRolesRepository,
    ReminderRepository,
    RoleAssignmentsRepository,
    ServerSettingsRepository,
    TaskRepository,
)
from taskcord.repositories.server_settings_repo import ServerSettingsRow
from taskcord.util.logger import get_logger

logger = get_logger("server_settings_service")

MAX_CATEGORY_LENGTH = 32
MAX_CATEGORIES = 25


def normalize_command_name(command: str) -> str:
    """``"/Task  Create"`` -> ``"task create"``."""
    return " ".join(command.strip().lstrip("/").lower().split())


class ServerSettingsService:
    """
    Orchestrates server settings persistence across the settings repositories.

    - No SQL here; only repository calls, transactions and locks.
    - Per-guild locks serialise read-modify-write cycles for one server.
    """

    def __init__(
        self,
        db: ConnectionManager = db_connection,
        cache: KeyValueCache = kv_cache,
        cache_enabled: Optional[bool] = None,
    ) -> None:
        self._db = db
        self._kv = cache
        self._cache: CacheAside[ServerSettings] = CacheAside(
            cache,
            "settings",
            encode=ServerSettings.to_dict,
            decode=ServerSettings.from_dict,
            enabled=app_config.cache_enabled if cache_enabled is None else cache_enabled,
        )
        self._settings_repo = ServerSettingsRepository()
        self._roles_repo = RoleAssignmentsRepository()
        self._categories_repo = CategoriesRepository()
        self._command_perms_repo = CommandPermissionsRepository()
        self._audit_repo = AuditLogRepository()
        self._per_guild_locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, guild_id: GuildID) -> asyncio.Lock:
        gid = guild_id.to_int()
        if gid not in self._per_guild_locks:
            self._per_guild_locks[gid] = asyncio.Lock()
        return self._per_guild_locks[gid]

    def _defaults(self, guild_id: GuildID) -> ServerSettings:
        return ServerSettings(guild_id=guild_id, timezone=app_config.default_timezone)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def _fetch(self, conn, guild_id: GuildID) -> ServerSettings | None:
        core = await self._settings_repo.get(conn, guild_id)
        if core is None:
            return None
        roles = await self._roles_repo.get_for_guild(conn, guild_id)
        categories = await self._categories_repo.get_for_guild(conn, guild_id)
        command_perms = await self._command_perms_repo.get_for_guild(conn, guild_id)
        return _row_to_settings(core, roles, categories, command_perms)

    async def get(self, guild_id: GuildID) -> ServerSettings:
        """Return a server's settings, falling back to defaults."""

        async def load() -> ServerSettings:
            async with self._db.read() as conn:
                settings = await self._fetch(conn, guild_id)
            return settings or self._defaults(guild_id)

        return await self._cache.get_or_load(self._cache.key(guild_id), load)

    async def list_guild_ids(self) -> List[GuildID]:
        async with self._db.read() as conn:
            ids = await self._settings_repo.get_guild_ids(conn)
        return [GuildID.from_int(gid) for gid in ids]

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def _persist(self, conn, settings: ServerSettings) -> None:
        await self._settings_repo.upsert(conn, _settings_to_row(settings))
        await self._roles_repo.replace(conn, settings.guild_id, RoleKind.ADMIN, settings.admin_role_ids)
        await self._roles_repo.replace(conn, settings.guild_id, RoleKind.MANAGER, settings.manager_role_ids)
        await self._categories_repo.replace(conn, settings.guild_id, settings.custom_categories)

    async def _load_for_write(self, conn, guild_id: GuildID) -> tuple[ServerSettings, bool]:
        settings = await self._fetch(conn, guild_id)
        if settings is None:
            return self._defaults(guild_id), False
        return settings, True

    async def _audit(
        self,
        conn,
        guild_id: GuildID,
        key: str,
        old_value: Any,
        new_value: Any,
        changed_by: Optional[UserID],
        action: AuditAction = AuditAction.UPDATE,
    ) -> None:
        await self._audit_repo.insert(
            conn,
            AuditLogEntry(
                guild_id=guild_id,
                key=key,
                action=action,
                old_value=old_value,
                new_value=new_value,
                changed_by=changed_by,
            ),
        )

    async def update(self, guild_id: GuildID, updated_by: Optional[UserID], **fields: Any) -> ServerSettings:
        """
        Change scalar settings (see ``EDITABLE_SETTINGS``).

        Raises:
            ConfigValidationError: for unknown fields or invalid values.
        """
        parsed = {name: _parse_setting(name, value) for name, value in fields.items()}

        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                settings, _ = await self._load_for_write(conn, guild_id)
                before = settings.to_dict()
                for name, value in parsed.items():
                    setattr(settings, name, value)
                after = settings.to_dict()

                changed = [name for name in parsed if before[name] != after[name]]
                if changed:
                    await self._persist(conn, settings)
                    for name in changed:
                        await self._audit(conn, guild_id, f"settings.{name}", before[name], after[name], updated_by)

        self._cache.put(self._cache.key(guild_id), settings)
        if changed:
            logger.info("[SETTINGS SERVICE] Guild %s updated %s", guild_id, ", ".join(changed))
        return settings

    async def set_feature(
        self, guild_id: GuildID, feature: str, enabled: bool, updated_by: Optional[UserID]
    ) -> ServerSettings:
        if feature not in FEATURE_NAMES:
            raise ConfigValidationError(
                f"Unknown feature '{feature}'. Available: {', '.join(FEATURE_NAMES)}"
            )
        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                settings, _ = await self._load_for_write(conn, guild_id)
                old = settings.is_feature_enabled(feature)
                if old != enabled:
                    setattr(settings.enabled_features, feature, enabled)
                    await self._persist(conn, settings)
                    await self._audit(conn, guild_id, f"features.{feature}", old, enabled, updated_by)
        self._cache.put(self._cache.key(guild_id), settings)
        return settings

    async def add_category(self, guild_id: GuildID, category: str, updated_by: Optional[UserID]) -> bool:
        """Returns False when the category already exists."""
        category = category.strip()
        if not category or len(category) > MAX_CATEGORY_LENGTH:
            raise ConfigValidationError(f"Category names must be 1-{MAX_CATEGORY_LENGTH} characters")

        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                settings, _ = await self._load_for_write(conn, guild_id)
                old = list(settings.custom_categories)
                if len(old) >= MAX_CATEGORIES and not settings.is_category_valid(category):
                    raise ConfigValidationError(f"A server can have at most {MAX_CATEGORIES} categories")
                added = settings.add_category(category)
                if added:
                    await self._persist(conn, settings)
                    await self._audit(conn, guild_id, "categories", old, settings.custom_categories, updated_by)
        self._cache.put(self._cache.key(guild_id), settings)
        return added

    async def remove_category(self, guild_id: GuildID, category: str, updated_by: Optional[UserID]) -> bool:
        """Returns False when the category did not exist."""
        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                settings, _ = await self._load_for_write(conn, guild_id)
                old = list(settings.custom_categories)
                removed = settings.remove_category(category.strip())
                if removed:
                    await self._persist(conn, settings)
                    await self._audit(conn, guild_id, "categories", old, settings.custom_categories, updated_by)
        self._cache.put(self._cache.key(guild_id), settings)
        return removed

    async def set_role_list(
        self,
        guild_id: GuildID,
        kind: RoleKind,
        role_ids: Iterable[int],
        updated_by: Optional[UserID],
    ) -> ServerSettings:
        """Replace the admin or manager role list."""
        new_ids = {int(rid) for rid in role_ids}
        attr = "admin_role_ids" if kind is RoleKind.ADMIN else "manager_role_ids"

        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                settings, _ = await self._load_for_write(conn, guild_id)
                old = set(getattr(settings, attr))
                if old != new_ids:
                    setattr(settings, attr, new_ids)
                    await self._persist(conn, settings)
                    await self._audit(conn, guild_id, f"roles.{kind.value}", sorted(old), sorted(new_ids), updated_by)
        self._cache.put(self._cache.key(guild_id), settings)
        return settings

    async def set_command_permission(
        self,
        guild_id: GuildID,
        command: str,
        role_id: int,
        access: CommandAccess,
        updated_by: Optional[UserID],
    ) -> ServerSettings:
        """
        Allow or deny ``role_id`` the use of ``command``.

        Allowing removes the role from the denied list and vice versa.
        """
        command = normalize_command_name(command)
        if not command:
            raise ConfigValidationError("Command name is required")

        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                settings, exists = await self._load_for_write(conn, guild_id)
                if not exists:
                    await self._persist(conn, settings)
                old = await self._command_perms_repo.get_access(conn, guild_id, command, role_id)
                if old is not access:
                    await self._command_perms_repo.set_access(conn, guild_id, command, role_id, access)
                    await self._audit(
                        conn,
                        guild_id,
                        f"permission.{command}.{role_id}",
                        old.value if old else None,
                        access.value,
                        updated_by,
                        AuditAction.CREATE if old is None else AuditAction.UPDATE,
                    )
                settings = await self._fetch(conn, guild_id)

        self._cache.put(self._cache.key(guild_id), settings)
        logger.info("[SETTINGS SERVICE] Guild %s: %s role %s for '%s'", guild_id, access.value, role_id, command)
        return settings

    async def clear_command_permission(
        self, guild_id: GuildID, command: str, role_id: int, updated_by: Optional[UserID]
    ) -> bool:
        command = normalize_command_name(command)
        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                old = await self._command_perms_repo.get_access(conn, guild_id, command, role_id)
                if old is None:
                    return False
                await self._command_perms_repo.remove(conn, guild_id, command, role_id)
                await self._audit(
                    conn, guild_id, f"permission.{command}.{role_id}", old.value, None, updated_by, AuditAction.DELETE
                )
        self._cache.invalidate(guild_id)
        return True

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_guild(self, guild_id: GuildID) -> bool:
        """
        Delete every row a server owns and drop its cache entries.

        Returns False if the purge failed; the transaction is rolled back.
        """
        try:
            async with self._lock_for(guild_id):
                async with self._db.transaction() as conn:
                    # CASCADE on server_settings removes roles, categories and command permissions
                    await self._settings_repo.delete(conn, guild_id)
                    await ConfigValuesRepository().delete_for_guild(conn, guild_id)
                    await self._audit_repo.delete_for_guild(conn, guild_id)
                    await ReminderRepository().delete_for_guild(conn, guild_id)
                    # CASCADE on tasks removes status history
                    await TaskRepository().delete_for_guild(conn, guild_id)
                    await NotificationPreferencesRepository().delete_for_guild(conn, guild_id)
                    await NotificationTemplatesRepository().delete_for_guild(conn, guild_id)
                    await PermissionRolesRepository().delete_for_guild(conn, guild_id)
        except Exception:
            logger.exception("[SETTINGS SERVICE] Failed to delete guild %s", guild_id)
            return False

        self._kv.invalidate(f"*:{guild_id}")
        self._kv.invalidate(f"*:{guild_id}:*")
        self._per_guild_locks.pop(guild_id.to_int(), None)
        logger.info("[SETTINGS SERVICE] Deleted all data for guild %s", guild_id)
        return True


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------

def _parse_setting(name: str, value: Any) -> Any:
    if name not in EDITABLE_SETTINGS:
        raise ConfigValidationError(f"Unknown setting '{name}'")

    if name == "notification_channel_id":
        if value is None:
            return None
        try:
            return ChannelID(value)
        except ValueError:
            raise ConfigValidationError(f"notification_channel_id must be a channel id, got {value!r}") from None
    if name == "default_task_priority":
        try:
            return TaskPriority(str(value).upper())
        except ValueError:
            raise ConfigValidationError(f"Invalid priority: {value}") from None
    if name == "timezone":
        try:
            ZoneInfo(str(value))
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigValidationError(f"Unknown timezone: {value}") from None
        return str(value)

    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"{name} must be a whole number") from None
    if name == "default_reminder_frequency" and number < 5:
        raise ConfigValidationError("Reminder frequency must be at least 5 minutes")
    if name == "max_tasks_per_user" and not 1 <= number <= 100:
        raise ConfigValidationError("max_tasks_per_user must be between 1 and 100")
    return number


def _row_to_settings(core: ServerSettingsRow, roles, categories, command_perms) -> ServerSettings:
    data = {
        "guild_id": core.guild_id,
        "default_reminder_frequency": core.default_reminder_frequency,
        "default_task_priority": core.default_task_priority,
        "timezone": core.timezone,
        "notification_channel_id": core.notification_channel_id,
        "max_tasks_per_user": core.max_tasks_per_user,
        "enabled_features": core.enabled_features,
        "custom_categories": categories,
    }
    settings = ServerSettings.from_dict(data)
    settings.admin_role_ids = set(roles[RoleKind.ADMIN])
    settings.manager_role_ids = set(roles[RoleKind.MANAGER])
    settings.command_permissions = dict(command_perms)
    return settings


def _settings_to_row(settings: ServerSettings) -> ServerSettingsRow:
    return ServerSettingsRow(
        guild_id=settings.guild_id.to_int(),
        default_reminder_frequency=settings.default_reminder_frequency,
        default_task_priority=settings.default_task_priority.value,
        timezone=settings.timezone,
        notification_channel_id=(
            settings.notification_channel_id.to_int() if settings.notification_channel_id else None
        ),
        max_tasks_per_user=settings.max_tasks_per_user,
        enabled_features=settings.enabled_features.to_dict(),
    )


server_settings_service = ServerSettingsService()
