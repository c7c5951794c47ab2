"""Event listener Cog for Taskcord.

This cog has exactly ONE responsibility: handle bot lifecycle events
(on_ready, on_guild_join, on_guild_remove).
"""

import discord
from discord.ext import commands

from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.notification.dispatcher import notification_dispatcher
from taskcord.notification.template_engine import template_engine
from taskcord.services.server_settings_service import server_settings_service
from taskcord.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Handles Discord bot lifecycle events."""

    def __init__(self, bot: discord.Bot) -> None:
        self.bot = bot
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        """Set bot presence and hand the client to the notification dispatcher."""
        if not self.bot.user:
            logger.warning(
                "[EVENTS LISTENER] Bot partially connected, user info not yet available."
            )
            return

        notification_dispatcher.set_bot(self.bot)
        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(
                type=discord.ActivityType.watching,
                name="your server's to-do list",
            ),
        )
        logger.info(
            "Bot connected as %s (ID: %s) in %d guilds",
            self.bot.user, self.bot.user.id, len(self.bot.guilds),
        )

    @commands.Cog.listener(name="on_guild_join")
    async def on_guild_join(self, guild: discord.Guild) -> None:
        settings = await server_settings_service.get(GuildID(guild.id))
        logger.info(
            "[EVENTS LISTENER] Joined guild '%s' (ID: %s), timezone %s",
            guild.name, guild.id, settings.timezone,
        )

    @commands.Cog.listener(name="on_guild_remove")
    async def on_guild_remove(self, guild: discord.Guild) -> None:
        """Delete all guild data when the bot leaves a server."""
        guild_id = GuildID(guild.id)
        logger.debug(
            "[EVENTS LISTENER] Bot removed from guild: %s (ID: %s)", guild.name, guild.id
        )

        notification_dispatcher.clear_guild(guild.id)
        template_engine.forget_guild(guild_id)

        success = await server_settings_service.delete_guild(guild_id)
        if success:
            logger.info(
                "[EVENTS LISTENER] Cleaned up data for guild '%s' (ID: %s)",
                guild.name,
                guild.id,
            )
        else:
            logger.error(
                "[EVENTS LISTENER] Failed to clean up data for guild '%s' (ID: %s)",
                guild.name,
                guild.id,
            )


def setup(bot: discord.Bot) -> None:
    """Register the EventsListenerCog with the bot."""
    bot.add_cog(EventsListenerCog(bot))
