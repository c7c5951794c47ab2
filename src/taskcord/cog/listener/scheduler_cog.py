"""Background scheduler cogs for Taskcord.

Contains three cogs:
- ReminderSchedulerCog: sends due task reminders
- OverdueCheckerCog: marks pending tasks past their deadline as overdue
- NotificationRetryCog: drains the notification dispatcher's retry queues

State lives in the database (reminder schedules, task deadlines), so bot
restarts are transparent; only queued notification retries are in memory.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import discord
from discord.ext import commands, tasks

from taskcord.configuration.app_configuration import app_config
from taskcord.notification.dispatcher import notification_dispatcher
from taskcord.notification.reminder_service import reminder_service
from taskcord.services.task_service import task_service
from taskcord.util.logger import get_logger

logger = get_logger("scheduler_cog")


# ---------------------------------------------------------------------------
# Shared base for interval jobs
# ---------------------------------------------------------------------------

class _IntervalJobCog(commands.Cog):
    """
    Reusable base for cogs that run one async job on a fixed interval.

    Subclasses supply:
        _name: human-readable tag used in log messages
        _get_interval: callable returning the configured interval in seconds
        _run_job: async callable returning how many items it handled
    """

    _name: str
    _get_interval: Callable[[], float]
    _run_job: Callable[[], Awaitable[int]]

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot

    @tasks.loop(seconds=1)  # real interval set in on_ready
    async def _job_task(self) -> None:
        await self.run_once()

    async def run_once(self) -> int:
        """Run the job a single time; failures are logged, never raised."""
        try:
            handled = await self._run_job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("[%s] Job failed", self._name)
            return 0
        if handled:
            logger.debug("[%s] Handled %d items", self._name, handled)
        return handled

    @_job_task.before_loop
    async def _before_job(self) -> None:
        await self.bot.wait_until_ready()

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        interval = self._get_interval()
        self._job_task.change_interval(seconds=interval)
        if not self._job_task.is_running():
            self._job_task.start()
            logger.info("[%s] Started (interval=%.1fs)", self._name, interval)

    def cog_unload(self) -> None:
        self._job_task.cancel()
        logger.info("[%s] Stopped", self._name)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

class ReminderSchedulerCog(_IntervalJobCog):
    """Sends every reminder whose time has come."""

    _name = "REMINDER_SCHEDULER"
    _get_interval = staticmethod(lambda: app_config.reminder_poll_interval)

    @staticmethod
    async def _run_job() -> int:
        return await reminder_service.process_due()


class OverdueCheckerCog(_IntervalJobCog):
    """Moves pending tasks past their deadline to OVERDUE in every guild."""

    _name = "OVERDUE_CHECKER"
    _get_interval = staticmethod(lambda: app_config.overdue_check_interval)

    @staticmethod
    async def _run_job() -> int:
        return await task_service.check_all_overdue()


class NotificationRetryCog(_IntervalJobCog):
    """Re-attempts rate-limited and transiently failed notifications."""

    _name = "NOTIFICATION_RETRY"
    _get_interval = staticmethod(lambda: app_config.retry_drain_interval)

    @staticmethod
    async def _run_job() -> int:
        return await notification_dispatcher.drain_retries()


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

def setup(bot: discord.Bot) -> None:
    bot.add_cog(ReminderSchedulerCog(bot))
    bot.add_cog(OverdueCheckerCog(bot))
    bot.add_cog(NotificationRetryCog(bot))
