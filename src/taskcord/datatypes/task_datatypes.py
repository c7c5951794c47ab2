"""
Task records and the task status lifecycle.

A task moves through a small set of statuses. The transitions that are legal
are listed in ``VALID_TRANSITIONS``; everything else is rejected by
:func:`is_valid_status_transition`. Completed and cancelled tasks may be
reopened (back to PENDING) but nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, FrozenSet, Optional

from taskcord.datatypes.discord_datatypes import GuildID, UserID


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


VALID_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({
        TaskStatus.IN_PROGRESS,
        TaskStatus.CANCELLED,
        TaskStatus.OVERDUE,
    }),
    TaskStatus.IN_PROGRESS: frozenset({
        TaskStatus.COMPLETED,
        TaskStatus.PENDING,
        TaskStatus.CANCELLED,
    }),
    TaskStatus.COMPLETED: frozenset({TaskStatus.PENDING}),
    TaskStatus.OVERDUE: frozenset({
        TaskStatus.IN_PROGRESS,
        TaskStatus.COMPLETED,
        TaskStatus.CANCELLED,
    }),
    TaskStatus.CANCELLED: frozenset({TaskStatus.PENDING}),
}

TERMINAL_STATUSES: FrozenSet[TaskStatus] = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})
ACTIVE_STATUSES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.PENDING,
    TaskStatus.IN_PROGRESS,
    TaskStatus.OVERDUE,
})

STATUS_EMOJIS: Dict[TaskStatus, str] = {
    TaskStatus.PENDING: "📝",
    TaskStatus.IN_PROGRESS: "⏳",
    TaskStatus.COMPLETED: "✅",
    TaskStatus.OVERDUE: "⚠️",
    TaskStatus.CANCELLED: "🚫",
}

PRIORITY_ORDER: Dict[TaskPriority, int] = {
    TaskPriority.URGENT: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


def is_valid_status_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """Return True if a task may move from ``from_status`` to ``to_status``."""
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def is_terminal_status(status: TaskStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_task_in_progress(status: TaskStatus) -> bool:
    """Active means still expected to be worked on: pending, in progress or overdue."""
    return status in ACTIVE_STATUSES


def default_status() -> TaskStatus:
    return TaskStatus.PENDING


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class Task:
    """A single server task as stored in the ``tasks`` table."""

    guild_id: GuildID
    title: str
    created_by: UserID
    id: Optional[int] = None
    description: str = ""
    assignee_id: Optional[UserID] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    category: Optional[str] = None
    deadline: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    reminder_frequency: Optional[int] = None  # minutes
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """A task is overdue once its deadline passed and it is not finished."""
        if self.deadline is None or is_terminal_status(self.status):
            return False
        return (now or utcnow()) > self.deadline

    def should_send_reminder(self, last_reminder_sent: datetime, now: Optional[datetime] = None) -> bool:
        """True when ``reminder_frequency`` minutes have elapsed since the last reminder."""
        if not self.reminder_frequency or is_terminal_status(self.status):
            return False
        next_due = last_reminder_sent + timedelta(minutes=self.reminder_frequency)
        return (now or utcnow()) >= next_due


@dataclass(slots=True)
class TaskStatusChange:
    """One row of a task's status history."""

    task_id: int
    guild_id: GuildID
    from_status: Optional[TaskStatus]
    to_status: TaskStatus
    changed_by: Optional[UserID]
    changed_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None


def should_update_status(task: Task, now: Optional[datetime] = None) -> tuple[bool, TaskStatus]:
    """
    Decide whether a task's stored status is stale.

    A task carrying ``completed_at`` but a non-terminal status is completed.
    A pending task past its deadline is overdue. Otherwise nothing changes.

    Returns:
        ``(should_update, new_status)``
    """
    if task.completed_at is not None:
        if is_terminal_status(task.status):
            return False, task.status
        return True, TaskStatus.COMPLETED

    now = now or utcnow()
    if task.deadline is not None and now > task.deadline and task.status == TaskStatus.PENDING:
        return True, TaskStatus.OVERDUE

    return False, task.status
