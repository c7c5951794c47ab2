"""
Generic per-server configuration values and their audit trail.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional

from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.task_datatypes import utcnow


class ConfigValueType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class ConfigPermissionLevel(IntEnum):
    """Ordered access levels; a higher level includes every lower one."""

    NONE = 0
    READ = 1
    WRITE = 2
    ADMIN = 3


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(slots=True)
class ConfigValue:
    guild_id: GuildID
    key: str
    value: Any
    type: ConfigValueType
    updated_by: Optional[UserID] = None
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "guild_id": str(self.guild_id),
            "key": self.key,
            "value": self.value,
            "type": self.type.value,
            "updated_by": str(self.updated_by) if self.updated_by else None,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ConfigValue":
        updated_by = data.get("updated_by")
        return cls(
            guild_id=GuildID(data["guild_id"]),
            key=data["key"],
            value=data["value"],
            type=ConfigValueType(data["type"]),
            updated_by=UserID(updated_by) if updated_by else None,
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(slots=True)
class AuditLogEntry:
    """One append-only record of a configuration change."""

    guild_id: GuildID
    key: str
    action: AuditAction
    old_value: Any
    new_value: Any
    changed_by: Optional[UserID]
    created_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None
