"""
Notification, template and reminder data types.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from taskcord.datatypes.discord_datatypes import ChannelID, GuildID, UserID
from taskcord.datatypes.task_datatypes import utcnow


class NotificationType(str, Enum):
    TASK_REMINDER = "TASK_REMINDER"
    TASK_DUE = "TASK_DUE"
    TASK_OVERDUE = "TASK_OVERDUE"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_COMPLETED = "TASK_COMPLETED"
    SYSTEM_ALERT = "SYSTEM_ALERT"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    QUEUED = "QUEUED"
    SENDING = "SENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    RETRY = "RETRY"


class ReminderFrequency(str, Enum):
    ONCE = "ONCE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


PRIORITY_COLORS: Dict[NotificationPriority, int] = {
    NotificationPriority.URGENT: 0xFF0000,
    NotificationPriority.HIGH: 0xFFA500,
    NotificationPriority.MEDIUM: 0xFFFF00,
    NotificationPriority.LOW: 0x00FF00,
}


@dataclass(slots=True)
class NotificationTemplate:
    """A message template with ``{placeholder}`` variables."""

    id: str
    type: NotificationType
    title: str
    content: str
    variables: List[str] = field(default_factory=list)
    guild_id: Optional[GuildID] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "variables": list(self.variables),
        }


@dataclass(slots=True)
class Notification:
    """A rendered notification on its way to a Discord user."""

    guild_id: GuildID
    recipient_id: UserID
    type: NotificationType
    title: str
    content: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    channel_id: Optional[ChannelID] = None
    mention_user: bool = True
    task_id: Optional[int] = None
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = 0
    error: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)
    sent_at: Optional[datetime] = None


@dataclass(slots=True)
class NotificationPreference:
    """Whether a user wants a given notification type, and whether to ping them."""

    guild_id: GuildID
    user_id: UserID
    type: NotificationType
    enabled: bool = True
    mention_user: bool = True


@dataclass(slots=True)
class ReminderSchedule:
    """
    The next reminder due for a task.

    ``interval_minutes`` holds the task's own reminder interval; when set it
    replaces the DAILY/WEEKLY step.
    """

    task_id: int
    guild_id: GuildID
    frequency: ReminderFrequency
    next_reminder: datetime
    last_sent: Optional[datetime] = None
    interval_minutes: Optional[int] = None
    id: Optional[int] = None


@dataclass(slots=True, frozen=True)
class RateLimitConfig:
    """Fixed-window delivery limit applied per guild."""

    requests_per_window: int = 50
    window_seconds: float = 1.0
