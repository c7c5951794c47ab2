"""
Embed builders for every reply and notification the bot sends.
"""

from __future__ import annotations

import datetime
import json
from typing import Dict, Iterable, List, Optional, Sequence

import discord

from taskcord.datatypes.config_datatypes import AuditAction, AuditLogEntry, ConfigValue
from taskcord.datatypes.notification_datatypes import (
    PRIORITY_COLORS,
    Notification,
    NotificationPreference,
    NotificationTemplate,
    NotificationType,
    ReminderSchedule,
)
from taskcord.datatypes.permission_datatypes import PermissionRole
from taskcord.datatypes.server_settings import FEATURE_NAMES, ServerSettings
from taskcord.datatypes.task_datatypes import (
    STATUS_EMOJIS,
    Task,
    TaskPriority,
    TaskStatus,
    TaskStatusChange,
)
from taskcord.util.format_utils import format_deadline, format_minutes, truncate

MAX_LIST_ITEMS = 20

STATUS_COLORS = {
    TaskStatus.PENDING: discord.Color.light_grey(),
    TaskStatus.IN_PROGRESS: discord.Color.blue(),
    TaskStatus.COMPLETED: discord.Color.green(),
    TaskStatus.OVERDUE: discord.Color.red(),
    TaskStatus.CANCELLED: discord.Color.dark_grey(),
}

PRIORITY_EMOJIS = {
    TaskPriority.URGENT: "🔴",
    TaskPriority.HIGH: "🟠",
    TaskPriority.MEDIUM: "🟡",
    TaskPriority.LOW: "🟢",
}

AUDIT_EMOJIS = {
    AuditAction.CREATE: "➕",
    AuditAction.UPDATE: "✏️",
    AuditAction.DELETE: "🗑️",
}


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _status_label(status: TaskStatus) -> str:
    return f"{STATUS_EMOJIS[status]} {status.value.replace('_', ' ').title()}"


def _priority_label(priority: TaskPriority) -> str:
    return f"{PRIORITY_EMOJIS[priority]} {priority.value.title()}"


def _mention(user_id) -> str:
    return f"<@{user_id}>" if user_id is not None else "Unassigned"


def _roles(role_ids: Iterable[int]) -> str:
    ids = sorted(role_ids)
    return ", ".join(f"<@&{rid}>" for rid in ids) if ids else "None"


def _json(value) -> str:
    return truncate(json.dumps(value, ensure_ascii=False), 200)


def success_embed(message: str, title: str = "✅ Done") -> discord.Embed:
    return discord.Embed(title=title, description=message, color=discord.Color.green(), timestamp=_now())


def error_embed(message: str, title: str = "❌ Error") -> discord.Embed:
    return discord.Embed(title=title, description=message, color=discord.Color.red(), timestamp=_now())


# ---------------------------------------------------------------- tasks

def build_task_embed(task: Task, tz_name: str) -> discord.Embed:
    """Full view of one task."""
    embed = discord.Embed(
        title=f"#{task.id} {truncate(task.title, 240)}",
        description=task.description or "*No description*",
        color=STATUS_COLORS[task.status],
        timestamp=task.updated_at,
    )
    embed.add_field(name="Status", value=_status_label(task.status), inline=True)
    embed.add_field(name="Priority", value=_priority_label(task.priority), inline=True)
    embed.add_field(name="Assignee", value=_mention(task.assignee_id), inline=True)
    embed.add_field(name="Deadline", value=format_deadline(task.deadline, tz_name), inline=True)
    embed.add_field(name="Category", value=task.category or "None", inline=True)
    embed.add_field(name="Reminders", value=format_minutes(task.reminder_frequency), inline=True)
    if task.completed_at:
        embed.add_field(name="Completed", value=format_deadline(task.completed_at, tz_name), inline=True)
    embed.set_footer(text=f"Created by user {task.created_by}")
    return embed


def build_task_list_embed(tasks: Sequence[Task], tz_name: str, title: str = "📋 Tasks") -> discord.Embed:
    embed = discord.Embed(title=title, color=discord.Color.blurple(), timestamp=_now())
    if not tasks:
        embed.description = "No tasks found."
        return embed

    lines: List[str] = []
    for task in tasks[:MAX_LIST_ITEMS]:
        deadline = f" · due {format_deadline(task.deadline, tz_name)}" if task.deadline else ""
        lines.append(
            f"{STATUS_EMOJIS[task.status]} **#{task.id}** {truncate(task.title, 60)} "
            f"· {PRIORITY_EMOJIS[task.priority]} · {_mention(task.assignee_id)}{deadline}"
        )
    if len(tasks) > MAX_LIST_ITEMS:
        lines.append(f"…and {len(tasks) - MAX_LIST_ITEMS} more")
    embed.description = "\n".join(lines)
    embed.set_footer(text=f"{len(tasks)} task{'s' if len(tasks) != 1 else ''}")
    return embed


def build_history_embed(task: Task, changes: Sequence[TaskStatusChange], tz_name: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"🕓 History of #{task.id} {truncate(task.title, 200)}",
        color=STATUS_COLORS[task.status],
        timestamp=_now(),
    )
    if not changes:
        embed.description = "No status changes recorded."
        return embed
    lines = []
    for change in changes:
        source = change.from_status.value if change.from_status else "created"
        actor = _mention(change.changed_by) if change.changed_by else "system"
        lines.append(
            f"`{format_deadline(change.changed_at, tz_name)}` {source} → **{change.to_status.value}** by {actor}"
        )
    embed.description = "\n".join(lines)
    return embed


# ---------------------------------------------------------------- settings

def build_settings_embed(settings: ServerSettings) -> discord.Embed:
    """Summary of a server's task settings."""
    embed = discord.Embed(
        title="⚙️ Server Settings",
        description="Use `/config settings` to change a value.",
        color=discord.Color.blurple(),
        timestamp=_now(),
    )
    channel = settings.notification_channel_id.mention() if settings.notification_channel_id else "Direct messages"
    embed.add_field(name="Default priority", value=_priority_label(settings.default_task_priority), inline=True)
    embed.add_field(name="Default reminders", value=format_minutes(settings.default_reminder_frequency), inline=True)
    embed.add_field(name="Timezone", value=settings.timezone, inline=True)
    embed.add_field(name="Notifications", value=channel, inline=True)
    embed.add_field(name="Max active tasks per user", value=str(settings.max_tasks_per_user), inline=True)

    features = "\n".join(
        f"{'✅' if settings.is_feature_enabled(name) else '❌'} {name.replace('_', ' ').title()}"
        for name in FEATURE_NAMES
    )
    embed.add_field(name="Features", value=features, inline=False)
    embed.add_field(name="Categories", value=", ".join(settings.custom_categories) or "None", inline=False)
    return embed


def build_roles_embed(settings: ServerSettings) -> discord.Embed:
    embed = discord.Embed(title="👥 Roles", color=discord.Color.blurple(), timestamp=_now())
    embed.add_field(name="Admin roles", value=_roles(settings.admin_role_ids), inline=False)
    embed.add_field(name="Manager roles", value=_roles(settings.manager_role_ids), inline=False)
    return embed


def build_categories_embed(settings: ServerSettings) -> discord.Embed:
    state = "enabled" if settings.is_feature_enabled("category_management") else "disabled"
    embed = discord.Embed(
        title="🗂️ Categories",
        description="\n".join(f"• {c}" for c in settings.custom_categories) or "No categories.",
        color=discord.Color.blurple(),
        timestamp=_now(),
    )
    embed.set_footer(text=f"Category management is {state}")
    return embed


def build_permissions_embed(settings: ServerSettings, roles: Dict[int, PermissionRole]) -> discord.Embed:
    embed = discord.Embed(title="🔐 Permissions", color=discord.Color.blurple(), timestamp=_now())
    if settings.command_permissions:
        lines = []
        for command, perm in sorted(settings.command_permissions.items()):
            lines.append(f"`/{command}` allow: {_roles(perm.allowed_roles)} · deny: {_roles(perm.denied_roles)}")
        embed.add_field(name="Command overrides", value=truncate("\n".join(lines), 1024), inline=False)
    else:
        embed.add_field(name="Command overrides", value="None", inline=False)

    if roles:
        lines = []
        for role_id, role in sorted(roles.items()):
            grants = ", ".join(sorted(p.value for p in role.permissions)) or "no grants"
            parent = f" (inherits <@&{role.inherits_from}>)" if role.inherits_from else ""
            lines.append(f"<@&{role_id}>: {grants}{parent}")
        embed.add_field(name="Role grants", value=truncate("\n".join(lines), 1024), inline=False)
    else:
        embed.add_field(name="Role grants", value="None", inline=False)
    return embed


def build_audit_embed(entries: Sequence[AuditLogEntry], tz_name: str) -> discord.Embed:
    embed = discord.Embed(title="📜 Configuration Audit Log", color=discord.Color.dark_gold(), timestamp=_now())
    if not entries:
        embed.description = "No changes recorded."
        return embed
    lines = []
    for entry in entries:
        actor = _mention(entry.changed_by) if entry.changed_by else "system"
        lines.append(
            f"{AUDIT_EMOJIS[entry.action]} `{entry.key}` {_json(entry.old_value)} → {_json(entry.new_value)}"
            f"\n  by {actor} at {format_deadline(entry.created_at, tz_name)}"
        )
    embed.description = truncate("\n".join(lines), 4000)
    return embed


def build_config_value_embed(value: Optional[ConfigValue], key: str) -> discord.Embed:
    if value is None:
        return discord.Embed(
            title=f"🔧 {key}", description="Not set.", color=discord.Color.light_grey(), timestamp=_now()
        )
    embed = discord.Embed(
        title=f"🔧 {key}",
        description=f"```json\n{truncate(json.dumps(value.value, indent=2, ensure_ascii=False), 3900)}\n```",
        color=discord.Color.blurple(),
        timestamp=value.updated_at,
    )
    embed.add_field(name="Type", value=value.type.value, inline=True)
    embed.add_field(name="Updated by", value=_mention(value.updated_by) if value.updated_by else "Unknown", inline=True)
    return embed


def build_server_config_embed(values: Dict[str, ConfigValue]) -> discord.Embed:
    embed = discord.Embed(title="🔧 Server Configuration", color=discord.Color.blurple(), timestamp=_now())
    if not values:
        embed.description = "No configuration values set."
        return embed
    lines = [f"`{key}` ({v.type.value}) = {_json(v.value)}" for key, v in sorted(values.items())]
    embed.description = truncate("\n".join(lines), 4000)
    return embed


# ---------------------------------------------------------------- notifications

def build_notification_embed(notification: Notification) -> discord.Embed:
    embed = discord.Embed(
        title=truncate(notification.title, 256),
        description=truncate(notification.content, 4096),
        color=PRIORITY_COLORS[notification.priority],
        timestamp=notification.created_at,
    )
    if notification.task_id is not None:
        embed.set_footer(text=f"Task #{notification.task_id}")
    return embed


def build_preferences_embed(preferences: Sequence[NotificationPreference]) -> discord.Embed:
    by_type = {p.type: p for p in preferences}
    lines = []
    for notification_type in NotificationType:
        pref = by_type.get(notification_type)
        enabled = pref.enabled if pref else True
        mention = pref.mention_user if pref else True
        lines.append(
            f"{'🔔' if enabled else '🔕'} **{notification_type.value}**"
            f"{' · mention' if enabled and mention else ''}"
        )
    return discord.Embed(
        title="🔔 Notification Preferences",
        description="\n".join(lines),
        color=discord.Color.blurple(),
        timestamp=_now(),
    )


def build_reminder_embed(task: Task, schedule: ReminderSchedule, tz_name: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"⏰ Reminder for #{task.id} {truncate(task.title, 200)}",
        color=discord.Color.blurple(),
        timestamp=_now(),
    )
    if schedule.interval_minutes:
        frequency = f"Every {format_minutes(schedule.interval_minutes)}"
    else:
        frequency = schedule.frequency.value.title()
    embed.add_field(name="Frequency", value=frequency, inline=True)
    embed.add_field(name="Next reminder", value=format_deadline(schedule.next_reminder, tz_name), inline=True)
    return embed


def build_template_embed(template: NotificationTemplate) -> discord.Embed:
    scope = "Server override" if template.guild_id else "Built-in"
    embed = discord.Embed(
        title=f"📝 Template `{template.id}`",
        color=discord.Color.blurple(),
        timestamp=_now(),
    )
    embed.add_field(name="Title", value=truncate(template.title, 1024), inline=False)
    embed.add_field(name="Content", value=truncate(template.content, 1024), inline=False)
    embed.add_field(name="Variables", value=", ".join(f"`{{{v}}}`" for v in template.variables) or "None", inline=False)
    embed.set_footer(text=f"{template.type.value} · {scope}")
    return embed


# ---------------------------------------------------------------- general

HELP_SECTIONS = {
    "📋 Tasks": (
        "`/task create` `/task list` `/task view` `/task status` `/task assign` "
        "`/task unassign` `/task deadline` `/task update` `/task delete` `/task history`"
    ),
    "⚙️ Configuration": (
        "`/config view` `/config settings` `/config roles` `/config categories` "
        "`/config permissions` `/config audit` `/config get` `/config set` `/config unset` "
        "`/config role-grant` `/config role-revoke` `/config role-inherit`"
    ),
    "🔔 Notifications": (
        "`/notify preferences` `/notify reminder` `/notify reminder-clear` `/notify template`"
    ),
}


def build_help_embed() -> discord.Embed:
    embed = discord.Embed(
        title="Taskcord Help",
        description="Track server chores and tasks with deadlines, reminders and roles.",
        color=discord.Color.blurple(),
        timestamp=_now(),
    )
    for name, value in HELP_SECTIONS.items():
        embed.add_field(name=name, value=value, inline=False)
    return embed
