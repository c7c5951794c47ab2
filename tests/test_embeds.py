from datetime import datetime, timezone

from taskcord.datatypes.config_datatypes import AuditAction, AuditLogEntry
from taskcord.datatypes.notification_datatypes import (
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
    ReminderFrequency,
    ReminderSchedule,
)
from taskcord.datatypes.server_settings import ServerSettings
from taskcord.datatypes.task_datatypes import Task, TaskStatus, TaskStatusChange
from taskcord.ui import embeds

from conftest import ALICE, BOB, GUILD


def _task(task_id=1, **overrides):
    fields = dict(id=task_id, guild_id=GUILD, title=f"Task {task_id}", created_by=ALICE, assignee_id=BOB)
    fields.update(overrides)
    return Task(**fields)


def _fields(embed):
    return {field.name: field.value for field in embed.fields}


def test_task_embed():
    embed = embeds.build_task_embed(
        _task(deadline=datetime(2030, 1, 1, 12, tzinfo=timezone.utc), reminder_frequency=1440), "UTC"
    )
    fields = _fields(embed)
    assert embed.title == "#1 Task 1"
    assert embed.description == "*No description*"
    assert fields["Assignee"] == BOB.mention()
    assert fields["Deadline"] == "2030-01-01 12:00 UTC"
    assert fields["Reminders"] == "1 day"
    assert "Completed" not in fields


def test_task_list_embed_truncates():
    tasks = [_task(i) for i in range(1, 26)]
    embed = embeds.build_task_list_embed(tasks, "UTC")
    assert embed.description.count("\n") == embeds.MAX_LIST_ITEMS
    assert embed.description.endswith("…and 5 more")
    assert embed.footer.text == "25 tasks"

    assert embeds.build_task_list_embed([], "UTC").description == "No tasks found."


def test_history_embed():
    task = _task()
    changes = [
        TaskStatusChange(task_id=1, guild_id=GUILD, from_status=None, to_status=TaskStatus.PENDING, changed_by=ALICE),
        TaskStatusChange(
            task_id=1, guild_id=GUILD, from_status=TaskStatus.PENDING, to_status=TaskStatus.OVERDUE, changed_by=None
        ),
    ]
    lines = embeds.build_history_embed(task, changes, "UTC").description.splitlines()
    assert "created → **PENDING**" in lines[0]
    assert lines[1].endswith("by system")


def test_settings_embed_defaults():
    fields = _fields(embeds.build_settings_embed(ServerSettings(guild_id=GUILD)))
    assert fields["Notifications"] == "Direct messages"
    assert fields["Categories"] == "General, Maintenance, Events"
    assert "❌ Task Templates" in fields["Features"]


def test_audit_embed():
    entry = AuditLogEntry(
        guild_id=GUILD, key="settings.timezone", action=AuditAction.UPDATE,
        old_value="UTC", new_value="Asia/Tokyo", changed_by=ALICE,
    )
    description = embeds.build_audit_embed([entry], "UTC").description
    assert "`settings.timezone`" in description
    assert ALICE.mention() in description
    assert embeds.build_audit_embed([], "UTC").description == "No changes recorded."


def test_notification_embed():
    notification = Notification(
        guild_id=GUILD, recipient_id=BOB, type=NotificationType.TASK_OVERDUE,
        title="Overdue", content="Late!", priority=NotificationPriority.URGENT, task_id=3,
    )
    embed = embeds.build_notification_embed(notification)
    assert embed.color.value == 0xFF0000
    assert embed.footer.text == "Task #3"


def test_preferences_embed_lists_every_type():
    prefs = [NotificationPreference(guild_id=GUILD, user_id=ALICE, type=NotificationType.TASK_DUE, enabled=False)]
    lines = embeds.build_preferences_embed(prefs).description.splitlines()
    assert len(lines) == len(NotificationType)
    assert "🔕 **TASK_DUE**" in lines
    assert "🔔 **TASK_REMINDER** · mention" in lines


def test_help_embed_mentions_every_group():
    names = [field.name for field in embeds.build_help_embed().fields]
    assert names == list(embeds.HELP_SECTIONS)


def test_reminder_embed_shows_task_interval():
    schedule = ReminderSchedule(
        task_id=1, guild_id=GUILD, frequency=ReminderFrequency.DAILY,
        next_reminder=datetime(2030, 1, 1, 12, tzinfo=timezone.utc), interval_minutes=30,
    )
    assert _fields(embeds.build_reminder_embed(_task(), schedule, "UTC"))["Frequency"] == "Every 30 mins"

    schedule.interval_minutes = None
    schedule.frequency = ReminderFrequency.WEEKLY
    assert _fields(embeds.build_reminder_embed(_task(), schedule, "UTC"))["Frequency"] == "Weekly"
