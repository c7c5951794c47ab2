"""
Named permissions and the roles that carry them.

A :class:`PermissionRole` may inherit from one parent role. The permissions
of a role are its own grants plus everything its ancestors grant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set

from taskcord.datatypes.discord_datatypes import GuildID


class Permission(str, Enum):
    TASK_CREATE = "task.create"
    TASK_ASSIGN = "task.assign"
    TASK_UPDATE = "task.update"
    TASK_DELETE = "task.delete"
    TASK_STATUS_ANY = "task.status.any"
    CONFIG_READ = "config.read"
    CONFIG_WRITE = "config.write"
    CONFIG_ADMIN = "config.admin"
    NOTIFICATION_MANAGE = "notification.manage"


# Permission a slash command requires when no role override applies
COMMAND_PERMISSIONS = {
    "task create": Permission.TASK_CREATE,
    "task assign": Permission.TASK_ASSIGN,
    "task unassign": Permission.TASK_ASSIGN,
    "task update": Permission.TASK_UPDATE,
    "task deadline": Permission.TASK_UPDATE,
    "task delete": Permission.TASK_DELETE,
    "task status": Permission.TASK_STATUS_ANY,
    "notify template": Permission.NOTIFICATION_MANAGE,
}


@dataclass(slots=True)
class PermissionRole:
    guild_id: GuildID
    role_id: int
    permissions: Set[Permission] = field(default_factory=set)
    inherits_from: Optional[int] = None
