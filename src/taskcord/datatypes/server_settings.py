"""
Per-server settings for the task tracker.

Database schema:
- server_settings: scalar settings (reminder frequency, timezone, features ...)
- server_role_assignments: admin and manager role ids
- server_categories: the task categories a server accepts
- command_permissions: per-command allow/deny role lists
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Set

from taskcord.datatypes.discord_datatypes import ChannelID, GuildID
from taskcord.datatypes.task_datatypes import TaskPriority


DEFAULT_REMINDER_FREQUENCY = 1440  # 24 hours, in minutes
DEFAULT_TIMEZONE = "Europe/Amsterdam"
DEFAULT_CATEGORIES = ("General", "Maintenance", "Events")
DEFAULT_MAX_TASKS_PER_USER = 5


class RoleKind(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"


class CommandAccess(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(slots=True)
class EnabledFeatures:
    automatic_reminders: bool = True
    deadline_escalation: bool = True
    category_management: bool = True
    task_templates: bool = False
    statistics: bool = True

    def to_dict(self) -> Dict[str, bool]:
        return {name: bool(getattr(self, name)) for name in FEATURE_NAMES}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnabledFeatures":
        return cls(**{name: bool(data[name]) for name in FEATURE_NAMES if name in data})


FEATURE_NAMES = (
    "automatic_reminders",
    "deadline_escalation",
    "category_management",
    "task_templates",
    "statistics",
)


@dataclass(slots=True)
class CommandPermission:
    """Roles explicitly allowed or denied a command. Deny wins over allow."""

    allowed_roles: Set[int] = field(default_factory=set)
    denied_roles: Set[int] = field(default_factory=set)

    def to_dict(self) -> Dict[str, List[int]]:
        return {
            "allowed_roles": sorted(self.allowed_roles),
            "denied_roles": sorted(self.denied_roles),
        }


@dataclass(slots=True)
class ServerSettings:
    """Persistent per-server configuration values."""

    guild_id: GuildID
    default_reminder_frequency: int = DEFAULT_REMINDER_FREQUENCY
    default_task_priority: TaskPriority = TaskPriority.MEDIUM
    timezone: str = DEFAULT_TIMEZONE
    notification_channel_id: ChannelID | None = None
    max_tasks_per_user: int = DEFAULT_MAX_TASKS_PER_USER
    admin_role_ids: Set[int] = field(default_factory=set)
    manager_role_ids: Set[int] = field(default_factory=set)
    enabled_features: EnabledFeatures = field(default_factory=EnabledFeatures)
    custom_categories: List[str] = field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    command_permissions: Dict[str, CommandPermission] = field(default_factory=dict)

    def is_feature_enabled(self, feature: str) -> bool:
        return bool(getattr(self.enabled_features, feature, False))

    def has_admin_role(self, role_id: int) -> bool:
        return role_id in self.admin_role_ids

    def has_manager_role(self, role_id: int) -> bool:
        return role_id in self.manager_role_ids or self.has_admin_role(role_id)

    def is_category_valid(self, category: str) -> bool:
        lowered = category.lower()
        return any(existing.lower() == lowered for existing in self.custom_categories)

    def add_category(self, category: str) -> bool:
        """Add a category; returns False if it was already present."""
        if self.is_category_valid(category):
            return False
        self.custom_categories.append(category)
        return True

    def remove_category(self, category: str) -> bool:
        lowered = category.lower()
        for existing in self.custom_categories:
            if existing.lower() == lowered:
                self.custom_categories.remove(existing)
                return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation used by the cache and /config view."""
        return {
            "guild_id": self.guild_id.to_int(),
            "default_reminder_frequency": self.default_reminder_frequency,
            "default_task_priority": self.default_task_priority.value,
            "timezone": self.timezone,
            "notification_channel_id": (
                self.notification_channel_id.to_int() if self.notification_channel_id else None
            ),
            "max_tasks_per_user": self.max_tasks_per_user,
            "admin_role_ids": sorted(self.admin_role_ids),
            "manager_role_ids": sorted(self.manager_role_ids),
            "enabled_features": self.enabled_features.to_dict(),
            "custom_categories": list(self.custom_categories),
            "command_permissions": {
                name: perm.to_dict() for name, perm in sorted(self.command_permissions.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSettings":
        channel = data.get("notification_channel_id")
        return cls(
            guild_id=GuildID(data["guild_id"]),
            default_reminder_frequency=int(data.get("default_reminder_frequency", DEFAULT_REMINDER_FREQUENCY)),
            default_task_priority=TaskPriority(data.get("default_task_priority", TaskPriority.MEDIUM.value)),
            timezone=data.get("timezone", DEFAULT_TIMEZONE),
            notification_channel_id=ChannelID(channel) if channel else None,
            max_tasks_per_user=int(data.get("max_tasks_per_user", DEFAULT_MAX_TASKS_PER_USER)),
            admin_role_ids=set(data.get("admin_role_ids", [])),
            manager_role_ids=set(data.get("manager_role_ids", [])),
            enabled_features=EnabledFeatures.from_dict(data.get("enabled_features", {})),
            custom_categories=list(data.get("custom_categories", DEFAULT_CATEGORIES)),
            command_permissions={
                name: CommandPermission(
                    allowed_roles=set(perm.get("allowed_roles", [])),
                    denied_roles=set(perm.get("denied_roles", [])),
                )
                for name, perm in data.get("command_permissions", {}).items()
            },
        )


# Scalar fields that /config settings may change, with the type they parse to
EDITABLE_SETTINGS: Dict[str, type] = {
    "default_reminder_frequency": int,
    "default_task_priority": TaskPriority,
    "timezone": str,
    "notification_channel_id": ChannelID,
    "max_tasks_per_user": int,
}
