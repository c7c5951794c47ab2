"""
NotificationDispatcher: rate-limited delivery of notifications to Discord.

Each guild gets a fixed window of ``requests_per_window`` sends every
``window_seconds``. A notification that does not fit in the current window,
or whose delivery failed with a transient error, waits on that guild's retry
queue until :meth:`process_retry_queue` (driven by the scheduler cog) picks
it up again. Each queue holds at most ``max_queue_size`` notifications; the
oldest is dropped when it is full. Permanent failures are marked FAILED.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

import discord

from taskcord.configuration.app_configuration import app_config
from taskcord.datatypes.notification_datatypes import (
    Notification,
    NotificationStatus,
    RateLimitConfig,
)
from taskcord.datatypes.task_datatypes import utcnow
from taskcord.errors import NotificationDeliveryError
from taskcord.ui.embeds import build_notification_embed
from taskcord.util.discord_utils import is_retryable_error
from taskcord.util.logger import get_logger

logger = get_logger("notification_dispatcher")


class NotificationDispatcher:
    def __init__(
        self,
        rate_limit: Optional[RateLimitConfig] = None,
        max_retries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        max_queue_size: Optional[int] = None,
    ) -> None:
        self.rate_limit = rate_limit or app_config.notification_rate_limit
        self.max_retries = app_config.notification_max_retries if max_retries is None else max_retries
        self.max_queue_size = app_config.notification_max_queue_size if max_queue_size is None else max_queue_size
        self._clock = clock
        self._bot: Optional[discord.Client] = None
        # guild id -> (window start, sends in window)
        self._windows: Dict[int, Tuple[float, int]] = {}
        self._retry_queues: Dict[int, Deque[Notification]] = {}

    def set_bot(self, bot: discord.Client) -> None:
        self._bot = bot

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    def _try_acquire(self, guild_id: int) -> bool:
        now = self._clock()
        start, count = self._windows.get(guild_id, (now, 0))
        if now - start >= self.rate_limit.window_seconds:
            start, count = now, 0
        if count >= self.rate_limit.requests_per_window:
            self._windows[guild_id] = (start, count)
            return False
        self._windows[guild_id] = (start, count + 1)
        return True

    def _enqueue(self, notification: Notification, status: NotificationStatus) -> None:
        notification.status = status
        queue = self._retry_queues.setdefault(notification.guild_id.to_int(), deque())
        while queue and len(queue) >= self.max_queue_size:
            dropped = queue.popleft()
            dropped.status = NotificationStatus.FAILED
            dropped.error = "retry queue full"
            logger.warning(
                "[DISPATCHER] Retry queue for guild %s is full, dropping %s", notification.guild_id, dropped.id
            )
        queue.append(notification)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, notification: Notification) -> bool:
        """
        Deliver now if the guild's window allows, otherwise queue.

        Returns True only when the notification was delivered.
        """
        if not self._try_acquire(notification.guild_id.to_int()):
            logger.debug("[DISPATCHER] Rate limited guild %s, queueing %s", notification.guild_id, notification.id)
            self._enqueue(notification, NotificationStatus.QUEUED)
            return False
        return await self._attempt(notification)

    async def _attempt(self, notification: Notification) -> bool:
        notification.status = NotificationStatus.SENDING
        try:
            await self._deliver(notification)
        except NotificationDeliveryError as exc:
            self._handle_failure(notification, exc)
            return False

        notification.status = NotificationStatus.SENT
        notification.sent_at = utcnow()
        notification.error = None
        logger.debug("[DISPATCHER] Sent %s %s to %s", notification.type.value, notification.id, notification.recipient_id)
        return True

    def _handle_failure(self, notification: Notification, exc: NotificationDeliveryError) -> None:
        notification.error = str(exc)
        if exc.retryable and notification.retry_count < self.max_retries:
            notification.retry_count += 1
            self._enqueue(notification, NotificationStatus.RETRY)
            logger.warning(
                "[DISPATCHER] Retry %d/%d queued for %s: %s",
                notification.retry_count, self.max_retries, notification.id, exc,
            )
        else:
            notification.status = NotificationStatus.FAILED
            logger.error("[DISPATCHER] Giving up on %s: %s", notification.id, exc)

    async def _deliver(self, notification: Notification) -> None:
        """Send to the configured channel, or to the recipient's DMs when there is none."""
        if self._bot is None:
            raise NotificationDeliveryError(notification.id, "bot is not ready", retryable=True)

        embed = build_notification_embed(notification)
        try:
            if notification.channel_id is not None:
                channel_id = notification.channel_id.to_int()
                channel = self._bot.get_channel(channel_id) or await self._bot.fetch_channel(channel_id)
                content = notification.recipient_id.mention() if notification.mention_user else None
                await channel.send(
                    content=content,
                    embed=embed,
                    allowed_mentions=discord.AllowedMentions(users=notification.mention_user),
                )
            else:
                user_id = notification.recipient_id.to_int()
                user = self._bot.get_user(user_id) or await self._bot.fetch_user(user_id)
                await user.send(embed=embed)
        except NotificationDeliveryError:
            raise
        except Exception as exc:
            raise NotificationDeliveryError(notification.id, str(exc) or type(exc).__name__, is_retryable_error(exc)) from exc

    # ------------------------------------------------------------------
    # Retry queue
    # ------------------------------------------------------------------

    async def process_retry_queue(self, guild_id: int) -> int:
        """
        Re-attempt queued notifications for one guild while its window allows.

        Returns the number delivered.
        """
        queue = self._retry_queues.get(guild_id)
        if not queue:
            return 0

        sent = 0
        for _ in range(len(queue)):
            if not self._try_acquire(guild_id):
                break
            notification = queue.popleft()
            if await self._attempt(notification):
                sent += 1

        if not queue:
            self._retry_queues.pop(guild_id, None)
        return sent

    async def drain_retries(self) -> int:
        total = 0
        for guild_id in list(self._retry_queues):
            total += await self.process_retry_queue(guild_id)
        if total:
            logger.info("[DISPATCHER] Delivered %d queued notifications", total)
        return total

    def get_queue_size(self, guild_id: Optional[int] = None) -> int:
        if guild_id is not None:
            return len(self._retry_queues.get(guild_id, ()))
        return sum(len(q) for q in self._retry_queues.values())

    def clear_guild(self, guild_id: int) -> None:
        self._retry_queues.pop(guild_id, None)
        self._windows.pop(guild_id, None)


notification_dispatcher = NotificationDispatcher()
