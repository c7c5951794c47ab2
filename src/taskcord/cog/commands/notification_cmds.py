"""
Notification cog: the /notify command group.

Members manage their own notification preferences and the reminder schedule
of tasks they are involved in. Changing a notification template affects the
whole server and is limited to managers (or roles granted
``notification.manage``).
"""

from datetime import timedelta

import discord
from discord import Option
from discord.ext import commands

from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.notification_datatypes import NotificationType, ReminderFrequency
from taskcord.datatypes.task_datatypes import utcnow
from taskcord.errors import ReminderError
from taskcord.notification.notification_service import notification_service
from taskcord.notification.reminder_service import reminder_service
from taskcord.services.permission_service import permission_service
from taskcord.services.server_settings_service import server_settings_service
from taskcord.services.task_service import task_service
from taskcord.ui.embeds import (
    build_preferences_embed,
    build_reminder_embed,
    build_template_embed,
    success_embed,
)
from taskcord.util.discord_utils import is_task_manager, report_command_error, respond_error
from taskcord.util.format_utils import parse_deadline
from taskcord.util.logger import get_logger

logger = get_logger("notification_commands")

TYPE_CHOICES = [
    discord.OptionChoice(name=t.value.replace("_", " ").title(), value=t.value)
    for t in NotificationType
]

FREQUENCY_CHOICES = [frequency.value for frequency in ReminderFrequency]

_FIRST_REMINDER_DELAY = {
    ReminderFrequency.ONCE: timedelta(days=1),
    ReminderFrequency.DAILY: timedelta(days=1),
    ReminderFrequency.WEEKLY: timedelta(days=7),
}


class NotificationCog(commands.Cog):
    """Notification preferences, reminders and templates."""

    notify = discord.SlashCommandGroup("notify", "Notifications and reminders")

    def __init__(self, discord_bot_instance):
        self.discord_bot_instance = discord_bot_instance
        logger.info("[NOTIFICATION CMDS] Notification cog loaded")

    async def _ensure_guild_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await respond_error(ctx, "Notifications are configured per server.")
            return False
        return True

    @notify.command(name="preferences", description="Show or change which notifications you receive.")
    async def preferences(
        self,
        ctx: discord.ApplicationContext,
        notification_type: Option(str, "Notification type to change.", choices=TYPE_CHOICES, default=None),  # type: ignore
        enabled: Option(bool, "Receive this notification.", default=None),  # type: ignore
        mention: Option(bool, "Mention you when posted in the notification channel.", default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        user_id = UserID.from_user(ctx.user)
        try:
            if notification_type is not None and (enabled is not None or mention is not None):
                await notification_service.set_preference(
                    guild_id, user_id, NotificationType(notification_type), enabled=enabled, mention_user=mention
                )
            prefs = await notification_service.get_preferences(guild_id, user_id)
            await ctx.respond(embed=build_preferences_embed(prefs), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "notify preferences")

    @notify.command(name="reminder", description="Show or set a task's reminder schedule.")
    async def reminder(
        self,
        ctx: discord.ApplicationContext,
        task_id: Option(int, "Task number.", min_value=1),  # type: ignore
        frequency: Option(str, "How often to remind.", choices=FREQUENCY_CHOICES, default=None),  # type: ignore
        first: Option(str, "First reminder as YYYY-MM-DD HH:MM (server time).", default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            found = await task_service.get_task(guild_id, task_id)

            if frequency is None:
                schedule = await reminder_service.get_reminder(task_id)
                if schedule is None:
                    await respond_error(ctx, f"Task #{task_id} has no reminders scheduled.")
                else:
                    await ctx.respond(embed=build_reminder_embed(found, schedule, settings.timezone), ephemeral=True)
                return

            involved = ctx.user.id in (found.assignee_id, found.created_by)
            if not (involved or is_task_manager(ctx.user, settings)):
                await respond_error(ctx, "Only the task's creator, its assignee or a manager can change reminders.")
                return

            parsed_frequency = ReminderFrequency(frequency)
            now = utcnow()
            if first:
                first_reminder = parse_deadline(first, settings.timezone)
                if first_reminder <= now:
                    raise ReminderError("The first reminder must be in the future")
            else:
                first_reminder = now + _FIRST_REMINDER_DELAY[parsed_frequency]

            schedule = await reminder_service.set_reminder(found, parsed_frequency, first_reminder)
            await ctx.respond(
                content=f"⏰ Reminders set for task #{task_id}",
                embed=build_reminder_embed(found, schedule, settings.timezone),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "notify reminder")

    @notify.command(name="reminder-clear", description="Stop reminders for a task.")
    async def reminder_clear(
        self,
        ctx: discord.ApplicationContext,
        task_id: Option(int, "Task number.", min_value=1),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            found = await task_service.get_task(guild_id, task_id)
            involved = ctx.user.id in (found.assignee_id, found.created_by)
            if not (involved or is_task_manager(ctx.user, settings)):
                await respond_error(ctx, "Only the task's creator, its assignee or a manager can change reminders.")
                return
            if await reminder_service.delete_reminder(task_id):
                await ctx.respond(embed=success_embed(f"Reminders for task #{task_id} stopped."), ephemeral=True)
            else:
                await respond_error(ctx, f"Task #{task_id} has no reminders scheduled.")
        except Exception as exc:
            await report_command_error(ctx, exc, "notify reminder-clear")

    @notify.command(name="template", description="Show, change or reset a notification template.")
    async def template(
        self,
        ctx: discord.ApplicationContext,
        notification_type: Option(str, "Template to work with.", choices=TYPE_CHOICES),  # type: ignore
        title: Option(str, "New title; use {placeholders} like {title} or {deadline}.", max_length=256, default=None),  # type: ignore
        content: Option(str, "New message text.", max_length=2000, default=None),  # type: ignore
        reset: Option(bool, "Go back to the built-in template.", default=False),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        parsed_type = NotificationType(notification_type)
        try:
            if not reset and title is None and content is None:
                current = await notification_service.get_template(guild_id, parsed_type)
                await ctx.respond(embed=build_template_embed(current), ephemeral=True)
                return

            settings = await server_settings_service.get(guild_id)
            await permission_service.require_command(
                guild_id, ctx.user, "notify template", is_task_manager(ctx.user, settings),
                message="You don't have permission to change notification templates.",
            )

            if reset:
                await notification_service.reset_guild_template(guild_id, parsed_type)
                current = await notification_service.get_template(guild_id, parsed_type)
                await ctx.respond(
                    content="✅ Template reset to the built-in version",
                    embed=build_template_embed(current),
                    ephemeral=True,
                )
                return

            current = await notification_service.get_template(guild_id, parsed_type)
            updated = await notification_service.set_guild_template(
                guild_id,
                parsed_type,
                title if title is not None else current.title,
                content if content is not None else current.content,
            )
            await ctx.respond(content="✅ Template saved", embed=build_template_embed(updated), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "notify template")


def setup(discord_bot_instance):
    discord_bot_instance.add_cog(NotificationCog(discord_bot_instance))
