"""
TaskService: the task lifecycle for one server at a time.

Responsibilities:
- Validate input against the server's settings
- Enforce the per-user active task limit
- Apply status transitions and record them in the history table
- Keep reminder schedules in step with the task
- Send assignment, completion and overdue notifications

Every lookup is scoped to the guild: a task id from another server is
reported as not found.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from taskcord.database.db_connection import ConnectionManager, db_connection
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.notification_datatypes import NotificationPriority, NotificationType
from taskcord.datatypes.server_settings import ServerSettings
from taskcord.datatypes.task_datatypes import (
    Task,
    TaskPriority,
    TaskStatus,
    TaskStatusChange,
    default_status,
    is_terminal_status,
    is_valid_status_transition,
    utcnow,
)
from taskcord.errors import AssignmentError, InvalidStatusTransitionError, TaskNotFoundError
from taskcord.notification.notification_service import NotificationService, notification_service
from taskcord.notification.reminder_service import (
    ReminderService,
    frequency_for_minutes,
    reminder_service,
)
from taskcord.repositories import ReminderRepository, TaskHistoryRepository, TaskRepository
from taskcord.services.server_settings_service import ServerSettingsService, server_settings_service
from taskcord.util.logger import get_logger
from taskcord.validation.task_validation import validate_task

logger = get_logger("task_service")

_UNSET = object()


class TaskService:
    def __init__(
        self,
        db: ConnectionManager = db_connection,
        settings_service: ServerSettingsService = server_settings_service,
        notifications: NotificationService = notification_service,
        reminders: ReminderService = reminder_service,
    ) -> None:
        self._db = db
        self._settings = settings_service
        self._notifications = notifications
        self._reminders = reminders
        self._task_repo = TaskRepository()
        self._history_repo = TaskHistoryRepository()
        self._reminder_repo = ReminderRepository()
        # Per-guild locks keep the active-task limit check and the write together
        self._per_guild_locks: Dict[int, asyncio.Lock] = {}

    def _lock_for(self, guild_id: GuildID) -> asyncio.Lock:
        gid = guild_id.to_int()
        if gid not in self._per_guild_locks:
            self._per_guild_locks[gid] = asyncio.Lock()
        return self._per_guild_locks[gid]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, conn, guild_id: GuildID, task_id: int) -> Task:
        task = await self._task_repo.get(conn, guild_id, task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def _check_load(self, conn, settings: ServerSettings, assignee_id: UserID) -> None:
        active = await self._task_repo.count_active_for_assignee(conn, settings.guild_id, assignee_id)
        if active >= settings.max_tasks_per_user:
            raise AssignmentError(
                f"{assignee_id.mention()} already has {active} active tasks "
                f"(limit {settings.max_tasks_per_user})"
            )

    async def _record(
        self, conn, task: Task, from_status: Optional[TaskStatus], changed_by: Optional[UserID], now: datetime
    ) -> None:
        await self._history_repo.insert(
            conn,
            TaskStatusChange(
                task_id=task.id,
                guild_id=task.guild_id,
                from_status=from_status,
                to_status=task.status,
                changed_by=changed_by,
                changed_at=now,
            ),
        )

    async def _notify(self, guild_id: GuildID, notification_type: NotificationType, recipient: UserID,
                      task: Task, **kwargs) -> None:
        try:
            await self._notifications.notify(guild_id, notification_type, recipient, task=task, **kwargs)
        except Exception:
            logger.exception("[TASK SERVICE] Failed to notify %s about task %s", recipient, task.id)

    async def _schedule_reminder(self, task: Task, settings: ServerSettings, now: datetime) -> None:
        if not task.reminder_frequency or not settings.is_feature_enabled("automatic_reminders"):
            return
        first = now + timedelta(minutes=task.reminder_frequency)
        if task.deadline is not None and now < task.deadline < first:
            first = task.deadline
        try:
            await self._reminders.set_reminder(
                task, frequency_for_minutes(task.reminder_frequency), first, interval_minutes=task.reminder_frequency
            )
        except Exception:
            logger.exception("[TASK SERVICE] Failed to schedule reminders for task %s", task.id)

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    async def create_task(
        self,
        guild_id: GuildID,
        created_by: UserID,
        title: str,
        description: str = "",
        assignee_id: Optional[UserID] = None,
        priority: Optional[TaskPriority] = None,
        category: Optional[str] = None,
        deadline: Optional[datetime] = None,
        reminder_frequency: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Create a task; the assignee defaults to the creator.

        Raises:
            TaskValidationError: invalid input.
            AssignmentError: the assignee is at the active task limit.
        """
        now = now or utcnow()
        settings = await self._settings.get(guild_id)
        assignee_id = assignee_id or created_by
        payload = validate_task(
            {
                "title": title,
                "description": description or "",
                "assignee_id": assignee_id,
                "priority": priority or settings.default_task_priority,
                "category": category,
                "deadline": deadline,
                "reminder_frequency": (
                    settings.default_reminder_frequency if reminder_frequency is None
                    else (reminder_frequency or None)  # 0 turns reminders off
                ),
            },
            settings=settings,
            now=now,
        )

        task = Task(
            guild_id=guild_id,
            title=payload["title"],
            description=payload["description"],
            created_by=created_by,
            assignee_id=assignee_id,
            status=default_status(),
            priority=payload["priority"],
            category=category,
            deadline=deadline,
            reminder_frequency=payload["reminder_frequency"],
            created_at=now,
            updated_at=now,
        )

        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                await self._check_load(conn, settings, assignee_id)
                task.id = await self._task_repo.insert(conn, task)
                await self._record(conn, task, None, created_by, now)

        logger.info("[TASK SERVICE] Guild %s created task %s", guild_id, task.id)
        await self._schedule_reminder(task, settings, now)
        await self._notify(guild_id, NotificationType.TASK_ASSIGNED, assignee_id, task,
                           extra={"assigner": created_by.mention()})
        return task

    async def update_task(
        self,
        guild_id: GuildID,
        task_id: int,
        updated_by: UserID,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[TaskPriority] = None,
        category: Optional[str] = None,
        deadline=_UNSET,
        reminder_frequency=_UNSET,
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Change task details. ``deadline`` and ``reminder_frequency`` accept
        None to clear them; leaving them out keeps the current value.
        """
        now = now or utcnow()
        settings = await self._settings.get(guild_id)
        changes = {
            "title": title,
            "description": description,
            "priority": priority,
            "category": category,
        }
        if deadline is not _UNSET:
            changes["deadline"] = deadline
        if reminder_frequency is not _UNSET:
            reminder_frequency = reminder_frequency or None
            changes["reminder_frequency"] = reminder_frequency
        payload = validate_task(changes, partial=True, settings=settings, now=now)

        async with self._db.transaction() as conn:
            task = await self._load(conn, guild_id, task_id)
            for name in ("title", "description", "priority", "category"):
                if payload[name] is not None:
                    setattr(task, name, payload[name])
            if deadline is not _UNSET:
                task.deadline = deadline
            if reminder_frequency is not _UNSET:
                task.reminder_frequency = reminder_frequency
            task.updated_at = now
            await self._task_repo.update(conn, task)

        if reminder_frequency is not _UNSET:
            if task.reminder_frequency and not is_terminal_status(task.status):
                await self._schedule_reminder(task, settings, now)
            else:
                await self._reminders.delete_reminder(task.id)

        logger.info("[TASK SERVICE] Guild %s: %s updated task %s", guild_id, updated_by, task_id)
        return task

    async def delete_task(self, guild_id: GuildID, task_id: int, deleted_by: UserID) -> None:
        async with self._db.transaction() as conn:
            await self._load(conn, guild_id, task_id)
            await self._reminder_repo.delete_for_task(conn, task_id)
            await self._task_repo.delete(conn, guild_id, task_id)
        logger.info("[TASK SERVICE] Guild %s: %s deleted task %s", guild_id, deleted_by, task_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def update_status(
        self,
        guild_id: GuildID,
        task_id: int,
        new_status: TaskStatus,
        changed_by: Optional[UserID],
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Move a task to ``new_status``.

        Raises:
            TaskNotFoundError: no such task in this guild.
            InvalidStatusTransitionError: the move is not allowed, including
                a move to the status the task already has.
        """
        now = now or utcnow()
        async with self._db.transaction() as conn:
            task = await self._load(conn, guild_id, task_id)
            old_status = task.status
            if not is_valid_status_transition(old_status, new_status):
                raise InvalidStatusTransitionError(old_status, new_status)

            task.status = new_status
            if new_status == TaskStatus.COMPLETED:
                task.completed_at = now
            elif old_status == TaskStatus.COMPLETED:
                task.completed_at = None
            task.updated_at = now
            await self._task_repo.update(conn, task)
            await self._record(conn, task, old_status, changed_by, now)

        logger.info("[TASK SERVICE] Task %s %s -> %s", task_id, old_status.value, new_status.value)

        if is_terminal_status(new_status):
            await self._reminders.delete_reminder(task_id)
        elif is_terminal_status(old_status):
            settings = await self._settings.get(guild_id)
            await self._schedule_reminder(task, settings, now)

        if new_status == TaskStatus.COMPLETED:
            completer = changed_by.mention() if changed_by else "the system"
            await self._notify(guild_id, NotificationType.TASK_COMPLETED, task.created_by, task,
                               extra={"completer": completer})
        return task

    async def assign_task(
        self,
        guild_id: GuildID,
        task_id: int,
        assignee_id: UserID,
        assigned_by: UserID,
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Give a task to ``assignee_id``. The task goes back to PENDING.

        Raises:
            AssignmentError: already assigned to that user, or the user is at
                the active task limit.
        """
        now = now or utcnow()
        settings = await self._settings.get(guild_id)
        async with self._lock_for(guild_id):
            async with self._db.transaction() as conn:
                task = await self._load(conn, guild_id, task_id)
                if task.assignee_id == assignee_id:
                    raise AssignmentError(f"Task #{task_id} is already assigned to {assignee_id.mention()}")
                await self._check_load(conn, settings, assignee_id)

                old_status = task.status
                task.assignee_id = assignee_id
                task.status = TaskStatus.PENDING
                task.completed_at = None
                task.updated_at = now
                await self._task_repo.update(conn, task)
                if old_status != TaskStatus.PENDING:
                    await self._record(conn, task, old_status, assigned_by, now)

        logger.info("[TASK SERVICE] Task %s assigned to %s", task_id, assignee_id)
        if is_terminal_status(old_status):
            await self._schedule_reminder(task, settings, now)
        await self._notify(guild_id, NotificationType.TASK_ASSIGNED, assignee_id, task,
                           extra={"assigner": assigned_by.mention()})
        return task

    async def unassign_task(
        self, guild_id: GuildID, task_id: int, unassigned_by: UserID, now: Optional[datetime] = None
    ) -> Task:
        now = now or utcnow()
        async with self._db.transaction() as conn:
            task = await self._load(conn, guild_id, task_id)
            if task.assignee_id is None:
                raise AssignmentError(f"Task #{task_id} is not assigned to anyone")
            task.assignee_id = None
            task.updated_at = now
            await self._task_repo.update(conn, task)
        logger.info("[TASK SERVICE] Task %s unassigned by %s", task_id, unassigned_by)
        return task

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_task(self, guild_id: GuildID, task_id: int) -> Task:
        async with self._db.read() as conn:
            return await self._load(conn, guild_id, task_id)

    async def list_tasks(
        self,
        guild_id: GuildID,
        status: Optional[TaskStatus] = None,
        assignee_id: Optional[UserID] = None,
        include_closed: bool = False,
    ) -> List[Task]:
        async with self._db.read() as conn:
            return await self._task_repo.list_for_guild(
                conn, guild_id, status=status, assignee_id=assignee_id, include_closed=include_closed
            )

    async def get_overdue_tasks(self, guild_id: GuildID, now: Optional[datetime] = None) -> List[Task]:
        async with self._db.read() as conn:
            return await self._task_repo.get_overdue(conn, guild_id, now or utcnow())

    async def get_history(self, guild_id: GuildID, task_id: int) -> List[TaskStatusChange]:
        async with self._db.read() as conn:
            await self._load(conn, guild_id, task_id)
            return await self._history_repo.list_for_task(conn, guild_id, task_id)

    # ------------------------------------------------------------------
    # Background checks
    # ------------------------------------------------------------------

    async def check_overdue_tasks(self, guild_id: GuildID, now: Optional[datetime] = None) -> List[Task]:
        """
        Mark PENDING tasks past their deadline as OVERDUE.

        The history row has no actor. With deadline escalation on, the
        assignee receives an urgent TASK_OVERDUE notification.
        """
        now = now or utcnow()
        async with self._db.transaction() as conn:
            candidates = await self._task_repo.get_pending_past_deadline(conn, guild_id, now)
            for task in candidates:
                task.status = TaskStatus.OVERDUE
                task.updated_at = now
                await self._task_repo.update(conn, task)
                await self._record(conn, task, TaskStatus.PENDING, None, now)

        if not candidates:
            return []

        logger.info("[TASK SERVICE] Guild %s: %d tasks now overdue", guild_id, len(candidates))
        settings = await self._settings.get(guild_id)
        if settings.is_feature_enabled("deadline_escalation"):
            for task in candidates:
                await self._notify(guild_id, NotificationType.TASK_OVERDUE, task.assignee_id or task.created_by,
                                   task, priority=NotificationPriority.URGENT)
        return candidates

    async def check_all_overdue(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        async with self._db.read() as conn:
            guild_ids = await self._task_repo.get_guild_ids_with_open_deadlines(conn)
        total = 0
        for gid in guild_ids:
            try:
                total += len(await self.check_overdue_tasks(GuildID.from_int(gid), now))
            except Exception:
                logger.exception("[TASK SERVICE] Overdue check failed for guild %s", gid)
        return total


task_service = TaskService()
