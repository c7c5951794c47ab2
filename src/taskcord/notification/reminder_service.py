"""
ReminderService: recurring reminders for open tasks.

Each task has at most one :class:`ReminderSchedule`. The scheduler cog calls
:meth:`ReminderService.process_due` once a minute; every schedule whose
``next_reminder`` has passed produces a TASK_REMINDER notification and is
then advanced (by the task's interval, or DAILY/WEEKLY) or removed (ONCE).
Schedules whose task is gone or finished are removed without sending anything.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from taskcord.database.db_connection import ConnectionManager, db_connection
from taskcord.datatypes.notification_datatypes import (
    NotificationType,
    ReminderFrequency,
    ReminderSchedule,
)
from taskcord.datatypes.task_datatypes import Task, is_terminal_status, utcnow
from taskcord.errors import ReminderError
from taskcord.notification.notification_service import NotificationService, notification_service
from taskcord.repositories import ReminderRepository, TaskRepository
from taskcord.services.server_settings_service import ServerSettingsService, server_settings_service
from taskcord.util.logger import get_logger
from taskcord.validation.task_validation import MIN_REMINDER_FREQUENCY

logger = get_logger("reminder_service")

_STEP = {
    ReminderFrequency.DAILY: timedelta(days=1),
    ReminderFrequency.WEEKLY: timedelta(days=7),
}


def frequency_for_minutes(minutes: int) -> ReminderFrequency:
    """Map a task's reminder interval onto a schedule frequency."""
    return ReminderFrequency.WEEKLY if minutes >= 7 * 1440 else ReminderFrequency.DAILY


class ReminderService:
    def __init__(
        self,
        db: ConnectionManager = db_connection,
        notifications: NotificationService = notification_service,
        settings_service: ServerSettingsService = server_settings_service,
    ) -> None:
        self._db = db
        self._notifications = notifications
        self._settings = settings_service
        self._reminder_repo = ReminderRepository()
        self._task_repo = TaskRepository()

    async def set_reminder(
        self,
        task: Task,
        frequency: ReminderFrequency,
        first_reminder: datetime,
        interval_minutes: Optional[int] = None,
    ) -> ReminderSchedule:
        """Create or replace the task's schedule.

        ``interval_minutes`` repeats the reminder on the task's own interval
        instead of the frequency's whole-day step.
        """
        if task.id is None:
            raise ReminderError("Task must be saved before scheduling reminders")
        if is_terminal_status(task.status):
            raise ReminderError(f"Task #{task.id} is {task.status.value.lower()}; reminders are off")
        if first_reminder.tzinfo is None:
            raise ReminderError("Reminder time must be timezone-aware")
        if interval_minutes is not None and interval_minutes < MIN_REMINDER_FREQUENCY:
            raise ReminderError(f"Reminder interval must be at least {MIN_REMINDER_FREQUENCY} minutes")

        schedule = ReminderSchedule(
            task_id=task.id,
            guild_id=task.guild_id,
            frequency=frequency,
            next_reminder=first_reminder,
            interval_minutes=interval_minutes,
        )
        async with self._db.transaction() as conn:
            await self._reminder_repo.upsert(conn, schedule)
        logger.debug("[REMINDER SERVICE] Task %s reminders %s from %s", task.id, frequency.value, first_reminder)
        return schedule

    async def get_reminder(self, task_id: int) -> ReminderSchedule | None:
        async with self._db.read() as conn:
            return await self._reminder_repo.get_for_task(conn, task_id)

    async def delete_reminder(self, task_id: int) -> bool:
        async with self._db.transaction() as conn:
            return await self._reminder_repo.delete_for_task(conn, task_id)

    @staticmethod
    def calculate_next(schedule: ReminderSchedule, now: Optional[datetime] = None) -> datetime | None:
        """
        The reminder after ``schedule.next_reminder``, or None for ONCE.

        Steps by the schedule's own interval when it has one, otherwise by
        whole days so the time of day stays the same. Occurrences already in
        the past are skipped.
        """
        if schedule.frequency is ReminderFrequency.ONCE:
            return None
        if schedule.interval_minutes:
            step = timedelta(minutes=schedule.interval_minutes)
        else:
            step = _STEP[schedule.frequency]
        now = now or utcnow()
        upcoming = schedule.next_reminder + step
        if upcoming <= now:
            missed = (now - upcoming) // step + 1
            upcoming += step * missed
        return upcoming

    async def process_due(self, now: Optional[datetime] = None) -> int:
        """Send every due reminder. Returns how many notifications were produced."""
        now = now or utcnow()
        async with self._db.read() as conn:
            due = await self._reminder_repo.get_due(conn, now)

        sent = 0
        for schedule in due:
            try:
                async with self._db.read() as conn:
                    task = await self._task_repo.get_by_id(conn, schedule.task_id)

                if task is None or is_terminal_status(task.status):
                    await self.delete_reminder(schedule.task_id)
                    continue

                settings = await self._settings.get(task.guild_id)
                if settings.is_feature_enabled("automatic_reminders"):
                    recipient = task.assignee_id or task.created_by
                    notification = await self._notifications.notify(
                        task.guild_id, NotificationType.TASK_REMINDER, recipient, task=task
                    )
                    if notification is not None:
                        sent += 1

                next_time = self.calculate_next(schedule, now)
                async with self._db.transaction() as conn:
                    if next_time is None:
                        await self._reminder_repo.delete_for_task(conn, schedule.task_id)
                    else:
                        schedule.next_reminder = next_time
                        schedule.last_sent = now
                        await self._reminder_repo.upsert(conn, schedule)
            except Exception:
                logger.exception("[REMINDER SERVICE] Failed to process reminder for task %s", schedule.task_id)

        if sent:
            logger.info("[REMINDER SERVICE] Sent %d reminders", sent)
        return sent


reminder_service = ReminderService()
