from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio

from taskcord.cog.commands import notification_cmds
from taskcord.datatypes.notification_datatypes import NotificationType, ReminderFrequency

from conftest import ALICE, BOB, GUILD, make_ctx, make_member

CAROL = 333333333333333333


@pytest.fixture
def cog(monkeypatch, task_service, settings_service, permission_service, notification_service, reminder_service):
    monkeypatch.setattr(notification_cmds, "task_service", task_service)
    monkeypatch.setattr(notification_cmds, "server_settings_service", settings_service)
    monkeypatch.setattr(notification_cmds, "permission_service", permission_service)
    monkeypatch.setattr(notification_cmds, "notification_service", notification_service)
    monkeypatch.setattr(notification_cmds, "reminder_service", reminder_service)
    return notification_cmds.NotificationCog(SimpleNamespace())


@pytest_asyncio.fixture
async def task(task_service):
    return await task_service.create_task(GUILD, ALICE, "Mop the floor", assignee_id=BOB, reminder_frequency=0)


def _reply(ctx):
    return ctx.respond.await_args.kwargs


@pytest.mark.asyncio
async def test_preferences_update(cog, notification_service):
    ctx = make_ctx()
    await notification_cmds.NotificationCog.preferences.callback(cog, ctx, "TASK_DUE", False, None)
    assert "🔕 **TASK_DUE**" in _reply(ctx)["embed"].description
    pref = await notification_service.get_preference(GUILD, ALICE, NotificationType.TASK_DUE)
    assert pref.enabled is False


@pytest.mark.asyncio
async def test_preferences_need_a_guild(cog):
    ctx = make_ctx(guild_id=None)
    await notification_cmds.NotificationCog.preferences.callback(cog, ctx, None, None, None)
    assert _reply(ctx)["embed"].description == "Notifications are configured per server."


@pytest.mark.asyncio
async def test_reminder_show_and_set(cog, task, reminder_service):
    ctx = make_ctx()
    await notification_cmds.NotificationCog.reminder.callback(cog, ctx, task.id, None, None)
    assert _reply(ctx)["embed"].description == f"Task #{task.id} has no reminders scheduled."

    ctx = make_ctx(user=make_member(BOB))
    await notification_cmds.NotificationCog.reminder.callback(cog, ctx, task.id, "WEEKLY", "2099-03-01 09:00")
    assert _reply(ctx)["content"] == f"⏰ Reminders set for task #{task.id}"
    schedule = await reminder_service.get_reminder(task.id)
    assert schedule.frequency is ReminderFrequency.WEEKLY

    ctx = make_ctx()
    await notification_cmds.NotificationCog.reminder_clear.callback(cog, ctx, task.id)
    assert _reply(ctx)["embed"].title == "✅ Done"
    assert await reminder_service.get_reminder(task.id) is None


@pytest.mark.asyncio
async def test_reminder_defaults_to_a_day_ahead(cog, task, reminder_service):
    before = datetime.now(timezone.utc)
    ctx = make_ctx()
    await notification_cmds.NotificationCog.reminder.callback(cog, ctx, task.id, "DAILY", None)
    schedule = await reminder_service.get_reminder(task.id)
    assert schedule.next_reminder >= (before + timedelta(days=1)).replace(microsecond=0)


@pytest.mark.asyncio
async def test_reminder_rejects_past_time_and_outsiders(cog, task):
    ctx = make_ctx()
    await notification_cmds.NotificationCog.reminder.callback(cog, ctx, task.id, "ONCE", "2000-01-01 09:00")
    assert _reply(ctx)["embed"].description == "The first reminder must be in the future"

    ctx = make_ctx(user=make_member(CAROL))
    await notification_cmds.NotificationCog.reminder.callback(cog, ctx, task.id, "ONCE", None)
    assert _reply(ctx)["embed"].description.startswith("Only the task's creator")


@pytest.mark.asyncio
async def test_template_show_change_reset(cog, notification_service):
    ctx = make_ctx()
    await notification_cmds.NotificationCog.template.callback(cog, ctx, "TASK_DUE", None, None, False)
    assert _reply(ctx)["embed"].title == "📝 Template `task_due`"

    ctx = make_ctx()
    await notification_cmds.NotificationCog.template.callback(cog, ctx, "TASK_DUE", "Due: {title}", None, False)
    assert _reply(ctx)["embed"].description == "You don't have permission to change notification templates."

    manager = make_member(manage_guild=True)
    ctx = make_ctx(user=manager)
    await notification_cmds.NotificationCog.template.callback(cog, ctx, "TASK_DUE", "Due: {title}", None, False)
    assert _reply(ctx)["content"] == "✅ Template saved"
    template = await notification_service.get_template(GUILD, NotificationType.TASK_DUE)
    assert template.title == "Due: {title}"
    assert template.content == "Task #{task_id} **{title}** is due {deadline}."

    ctx = make_ctx(user=manager)
    await notification_cmds.NotificationCog.template.callback(cog, ctx, "TASK_DUE", None, None, True)
    assert _reply(ctx)["content"] == "✅ Template reset to the built-in version"


@pytest.mark.asyncio
async def test_template_unknown_variable(cog):
    ctx = make_ctx(user=make_member(administrator=True))
    await notification_cmds.NotificationCog.template.callback(cog, ctx, "TASK_DUE", "Due {when}", None, False)
    assert _reply(ctx)["embed"].description.startswith("Unknown variables: when")
