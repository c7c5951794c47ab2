"""
General commands: /help and /ping.
"""

import discord
from discord.ext import commands

from taskcord.ui.embeds import build_help_embed
from taskcord.util.logger import get_logger

logger = get_logger("general_commands")


class GeneralCog(commands.Cog):
    """Commands that are not tied to a server's tasks."""

    def __init__(self, discord_bot_instance):
        self.discord_bot_instance = discord_bot_instance
        logger.info("[GENERAL CMDS] General cog loaded")

    @commands.slash_command(name="help", description="Show what Taskcord can do.")
    async def help(self, ctx: discord.ApplicationContext) -> None:
        await ctx.respond(embed=build_help_embed(), ephemeral=True)

    @commands.slash_command(name="ping", description="Check that the bot is responsive.")
    async def ping(self, ctx: discord.ApplicationContext) -> None:
        await ctx.respond(
            f"🏓 Pong! Latency {self.discord_bot_instance.latency * 1000:.0f} ms",
            ephemeral=True,
        )


def setup(discord_bot_instance):
    discord_bot_instance.add_cog(GeneralCog(discord_bot_instance))
