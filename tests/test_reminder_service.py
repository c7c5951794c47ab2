from datetime import datetime, timedelta, timezone

import pytest

from taskcord.datatypes.notification_datatypes import ReminderFrequency, ReminderSchedule
from taskcord.datatypes.task_datatypes import TaskStatus
from taskcord.errors import ReminderError
from taskcord.notification.reminder_service import ReminderService, frequency_for_minutes

from conftest import ALICE, BOB, GUILD

NOW = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


def _schedule(frequency, next_reminder=NOW, interval_minutes=None):
    return ReminderSchedule(
        task_id=1, guild_id=GUILD, frequency=frequency, next_reminder=next_reminder, interval_minutes=interval_minutes
    )


def test_calculate_next_once():
    assert ReminderService.calculate_next(_schedule(ReminderFrequency.ONCE), NOW) is None


def test_calculate_next_keeps_time_of_day():
    assert ReminderService.calculate_next(_schedule(ReminderFrequency.DAILY), NOW) == NOW + timedelta(days=1)
    assert ReminderService.calculate_next(_schedule(ReminderFrequency.WEEKLY), NOW) == NOW + timedelta(days=7)


def test_calculate_next_skips_missed_occurrences():
    later = NOW + timedelta(days=3, hours=2)
    assert ReminderService.calculate_next(_schedule(ReminderFrequency.DAILY), later) == NOW + timedelta(days=4)


@pytest.mark.parametrize(
    "minutes, expected",
    [(60, ReminderFrequency.DAILY), (1440, ReminderFrequency.DAILY), (7 * 1440, ReminderFrequency.WEEKLY)],
)
def test_frequency_for_minutes(minutes, expected):
    assert frequency_for_minutes(minutes) is expected


@pytest.mark.asyncio
async def test_process_due_sends_and_advances(task_service, reminder_service, fake_bot):
    task = await task_service.create_task(GUILD, ALICE, "Feed the cat", assignee_id=BOB, now=NOW)
    fake_bot.user.send.reset_mock()

    assert await reminder_service.process_due(now=NOW + timedelta(hours=1)) == 0
    fake_bot.user.send.assert_not_awaited()

    due_at = NOW + timedelta(days=1)
    assert await reminder_service.process_due(now=due_at) == 1
    assert fake_bot.user.send.await_args.kwargs["embed"].title == "⏰ Task Reminder: Feed the cat"

    schedule = await reminder_service.get_reminder(task.id)
    assert schedule.next_reminder == NOW + timedelta(days=2)
    assert schedule.last_sent == due_at


@pytest.mark.asyncio
async def test_once_reminder_is_removed_after_sending(task_service, reminder_service):
    task = await task_service.create_task(GUILD, ALICE, "Call the plumber", reminder_frequency=0, now=NOW)
    await reminder_service.set_reminder(task, ReminderFrequency.ONCE, NOW + timedelta(hours=1))

    assert await reminder_service.process_due(now=NOW + timedelta(hours=1)) == 1
    assert await reminder_service.get_reminder(task.id) is None


@pytest.mark.asyncio
async def test_finished_task_schedule_is_dropped(task_service, reminder_service, fake_bot):
    task = await task_service.create_task(GUILD, ALICE, "Done already", reminder_frequency=0, now=NOW)
    await reminder_service.set_reminder(task, ReminderFrequency.DAILY, NOW + timedelta(hours=1))
    await task_service.update_status(GUILD, task.id, TaskStatus.IN_PROGRESS, ALICE, now=NOW)
    await task_service.update_status(GUILD, task.id, TaskStatus.COMPLETED, ALICE, now=NOW)
    # completing already removed it; put one back to simulate a stale row
    task.status = TaskStatus.IN_PROGRESS
    await reminder_service.set_reminder(task, ReminderFrequency.DAILY, NOW + timedelta(hours=1))
    fake_bot.user.send.reset_mock()

    assert await reminder_service.process_due(now=NOW + timedelta(hours=2)) == 0
    assert await reminder_service.get_reminder(task.id) is None
    fake_bot.user.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_disabled_feature_advances_without_sending(task_service, reminder_service, settings_service, fake_bot):
    task = await task_service.create_task(GUILD, ALICE, "Quiet", now=NOW)
    await settings_service.set_feature(GUILD, "automatic_reminders", False, ALICE)
    fake_bot.user.send.reset_mock()

    assert await reminder_service.process_due(now=NOW + timedelta(days=1)) == 0
    fake_bot.user.send.assert_not_awaited()
    assert (await reminder_service.get_reminder(task.id)).next_reminder == NOW + timedelta(days=2)


@pytest.mark.asyncio
async def test_set_reminder_rejects_bad_input(task_service, reminder_service):
    task = await task_service.create_task(GUILD, ALICE, "Sort mail", now=NOW)

    with pytest.raises(ReminderError, match="timezone-aware"):
        await reminder_service.set_reminder(task, ReminderFrequency.DAILY, datetime(2030, 1, 2, 9, 0))

    await task_service.update_status(GUILD, task.id, TaskStatus.CANCELLED, ALICE, now=NOW)
    cancelled = await task_service.get_task(GUILD, task.id)
    with pytest.raises(ReminderError, match="reminders are off"):
        await reminder_service.set_reminder(cancelled, ReminderFrequency.DAILY, NOW + timedelta(days=1))


@pytest.mark.asyncio
async def test_delete_reminder(task_service, reminder_service):
    task = await task_service.create_task(GUILD, ALICE, "Water", now=NOW)
    assert await reminder_service.delete_reminder(task.id) is True
    assert await reminder_service.delete_reminder(task.id) is False


def test_calculate_next_uses_task_interval():
    schedule = _schedule(ReminderFrequency.DAILY, interval_minutes=30)
    assert ReminderService.calculate_next(schedule, NOW) == NOW + timedelta(minutes=30)
    # two missed half hours are skipped, the time stays on the half-hour grid
    later = NOW + timedelta(minutes=75)
    assert ReminderService.calculate_next(schedule, later) == NOW + timedelta(minutes=90)


def test_once_ignores_interval():
    assert ReminderService.calculate_next(_schedule(ReminderFrequency.ONCE, interval_minutes=30), NOW) is None


@pytest.mark.asyncio
async def test_sub_day_task_interval_repeats_on_that_interval(task_service, reminder_service, fake_bot):
    task = await task_service.create_task(GUILD, ALICE, "Stir the soup", reminder_frequency=30, now=NOW)
    schedule = await reminder_service.get_reminder(task.id)
    assert schedule.next_reminder == NOW + timedelta(minutes=30)
    assert schedule.interval_minutes == 30
    fake_bot.user.send.reset_mock()

    assert await reminder_service.process_due(now=NOW + timedelta(minutes=30)) == 1
    assert (await reminder_service.get_reminder(task.id)).next_reminder == NOW + timedelta(hours=1)

    assert await reminder_service.process_due(now=NOW + timedelta(hours=1)) == 1
    assert (await reminder_service.get_reminder(task.id)).next_reminder == NOW + timedelta(minutes=90)


@pytest.mark.asyncio
async def test_set_reminder_rejects_short_interval(task_service, reminder_service):
    task = await task_service.create_task(GUILD, ALICE, "Blink", reminder_frequency=0, now=NOW)
    with pytest.raises(ReminderError, match="at least 5 minutes"):
        await reminder_service.set_reminder(task, ReminderFrequency.DAILY, NOW + timedelta(hours=1), interval_minutes=1)
