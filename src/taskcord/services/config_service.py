"""
ConfigService: typed key/value configuration per server.

Every call carries the caller's :class:`ConfigPermissionLevel`; reads need
READ, writes need WRITE and deletes need ADMIN. Values are cached per key
and per server; any write drops the whole server's cache so the two never
disagree.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from taskcord.configuration.app_configuration import app_config
from taskcord.database.cache_aside import CacheAside
from taskcord.database.db_cache import KeyValueCache, kv_cache
from taskcord.database.db_connection import ConnectionManager, db_connection
from taskcord.datatypes.config_datatypes import (
    AuditAction,
    AuditLogEntry,
    ConfigPermissionLevel,
    ConfigValue,
    ConfigValueType,
)
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.task_datatypes import utcnow
from taskcord.errors import ConfigNotFoundError, ConfigPermissionError, ConfigValidationError
from taskcord.repositories import AuditLogRepository, ConfigValuesRepository
from taskcord.util.logger import get_logger
from taskcord.validation.config_validation import (
    ConfigUpdateDto,
    validate_config_key,
    validate_config_value,
    validate_server_id,
)

logger = get_logger("config_service")


def _require(level: ConfigPermissionLevel, required: ConfigPermissionLevel) -> None:
    if level < required:
        raise ConfigPermissionError(
            f"{required.name} permission required (you have {level.name})"
        )


def _encode_values(values: Dict[str, ConfigValue]) -> List[dict]:
    return [v.to_dict() for v in values.values()]


def _decode_values(data: List[dict]) -> Dict[str, ConfigValue]:
    values = [ConfigValue.from_dict(d) for d in data]
    return {v.key: v for v in values}


class ConfigService:
    def __init__(
        self,
        db: ConnectionManager = db_connection,
        cache: KeyValueCache = kv_cache,
        cache_enabled: Optional[bool] = None,
    ) -> None:
        enabled = app_config.cache_enabled if cache_enabled is None else cache_enabled
        self._db = db
        self._values_cache: CacheAside[ConfigValue] = CacheAside(
            cache, "config", encode=ConfigValue.to_dict, decode=ConfigValue.from_dict, enabled=enabled
        )
        self._server_cache: CacheAside[Dict[str, ConfigValue]] = CacheAside(
            cache, "config", encode=_encode_values, decode=_decode_values, enabled=enabled
        )
        self._values_repo = ConfigValuesRepository()
        self._audit_repo = AuditLogRepository()

    async def get_value(
        self,
        guild_id: GuildID,
        key: str,
        expected_type: Optional[ConfigValueType] = None,
        level: ConfigPermissionLevel = ConfigPermissionLevel.READ,
    ) -> ConfigValue | None:
        """
        Look up one value; None when the key was never set.

        Raises:
            ConfigPermissionError: below READ.
            ConfigValidationError: the stored type differs from ``expected_type``.
        """
        _require(level, ConfigPermissionLevel.READ)
        validate_config_key(key)

        async def load() -> ConfigValue | None:
            async with self._db.read() as conn:
                return await self._values_repo.get(conn, guild_id, key)

        value = await self._values_cache.get_or_load(self._values_cache.key(guild_id, key), load)
        if value is not None and expected_type is not None and value.type is not expected_type:
            raise ConfigValidationError(
                f"Config '{key}' is {value.type.value}, expected {expected_type.value}"
            )
        return value

    async def set_value(
        self,
        guild_id: GuildID,
        key: str,
        value: Any,
        value_type: ConfigValueType,
        updated_by: Optional[UserID],
        level: ConfigPermissionLevel = ConfigPermissionLevel.WRITE,
    ) -> ConfigValue:
        _require(level, ConfigPermissionLevel.WRITE)
        validate_server_id(guild_id)
        validate_config_key(key)
        validate_config_value(value, value_type)

        new = ConfigValue(guild_id=guild_id, key=key, value=value, type=value_type, updated_by=updated_by)
        async with self._db.transaction() as conn:
            await self._write(conn, new)

        self._server_cache.invalidate_guild(guild_id)
        logger.info("[CONFIG SERVICE] Guild %s set %s", guild_id, key)
        return new

    async def _write(self, conn, new: ConfigValue) -> None:
        old = await self._values_repo.get(conn, new.guild_id, new.key)
        await self._values_repo.upsert(conn, new)
        await self._audit_repo.insert(
            conn,
            AuditLogEntry(
                guild_id=new.guild_id,
                key=new.key,
                action=AuditAction.CREATE if old is None else AuditAction.UPDATE,
                old_value=old.value if old else None,
                new_value=new.value,
                changed_by=new.updated_by,
            ),
        )

    async def apply_update(
        self, dto: ConfigUpdateDto, level: ConfigPermissionLevel = ConfigPermissionLevel.WRITE
    ) -> List[ConfigValue]:
        """Write a validated batch in one transaction; all or nothing."""
        _require(level, ConfigPermissionLevel.WRITE)
        validate_server_id(dto.guild_id)
        guild_id = GuildID(dto.guild_id)
        updated_by = UserID(dto.updated_by)
        now = utcnow()
        written = [
            ConfigValue(guild_id=guild_id, key=item.key, value=item.value, type=item.type,
                        updated_by=updated_by, updated_at=now)
            for item in dto.values
        ]
        async with self._db.transaction() as conn:
            for value in written:
                await self._write(conn, value)
        self._server_cache.invalidate_guild(guild_id)
        return written

    async def delete_value(
        self,
        guild_id: GuildID,
        key: str,
        deleted_by: Optional[UserID],
        level: ConfigPermissionLevel = ConfigPermissionLevel.ADMIN,
    ) -> None:
        _require(level, ConfigPermissionLevel.ADMIN)
        validate_config_key(key)

        async with self._db.transaction() as conn:
            old = await self._values_repo.get(conn, guild_id, key)
            if old is None:
                raise ConfigNotFoundError(f"Config '{key}' is not set")
            await self._values_repo.delete(conn, guild_id, key)
            await self._audit_repo.insert(
                conn,
                AuditLogEntry(
                    guild_id=guild_id,
                    key=key,
                    action=AuditAction.DELETE,
                    old_value=old.value,
                    new_value=None,
                    changed_by=deleted_by,
                ),
            )

        self._server_cache.invalidate_guild(guild_id)
        logger.info("[CONFIG SERVICE] Guild %s deleted %s", guild_id, key)

    async def get_server_config(
        self, guild_id: GuildID, level: ConfigPermissionLevel = ConfigPermissionLevel.READ
    ) -> Dict[str, ConfigValue]:
        _require(level, ConfigPermissionLevel.READ)

        async def load() -> Dict[str, ConfigValue]:
            async with self._db.read() as conn:
                values = await self._values_repo.list_for_guild(conn, guild_id)
            return {v.key: v for v in values}

        return await self._server_cache.get_or_load(self._server_cache.key(guild_id), load)

    async def get_audit_log(
        self,
        guild_id: GuildID,
        key: Optional[str] = None,
        limit: int = 10,
        level: ConfigPermissionLevel = ConfigPermissionLevel.READ,
    ) -> List[AuditLogEntry]:
        """Newest first. Covers settings, permission and config changes alike."""
        _require(level, ConfigPermissionLevel.READ)
        async with self._db.read() as conn:
            return await self._audit_repo.list_for_guild(conn, guild_id, key=key, limit=max(1, min(limit, 50)))


config_service = ConfigService()
