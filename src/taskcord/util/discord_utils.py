"""
Helpers for working with py-cord objects inside command handlers.
"""

from typing import Union

import discord

from taskcord.datatypes.server_settings import ServerSettings
from taskcord.errors import TaskcordError
from taskcord.ui.embeds import error_embed
from taskcord.util.logger import get_logger

logger = get_logger("discord_utils")


def has_elevated_permissions(member: Union[discord.User, discord.Member]) -> bool:
    """True for administrators and members who can manage the server or its messages."""
    if not isinstance(member, discord.Member):
        return False
    perms = member.guild_permissions
    return any(
        getattr(perms, attr, False)
        for attr in ("administrator", "manage_guild", "manage_messages")
    )


def role_ids_of(member: Union[discord.User, discord.Member]) -> set[int]:
    if not isinstance(member, discord.Member):
        return set()
    return {role.id for role in member.roles}


def is_retryable_error(exc: BaseException) -> bool:
    """
    Whether a failed Discord call is worth retrying.

    Server errors (5xx), rate limits, timeouts and connection problems are
    transient; missing permissions, unknown channels and bad requests are not.
    """
    if isinstance(exc, discord.HTTPException):
        status = getattr(exc, "status", 0) or 0
        return status >= 500 or status == 429
    return isinstance(exc, (TimeoutError, ConnectionError))


async def respond_error(ctx: discord.ApplicationContext, message: str) -> None:
    await ctx.respond(embed=error_embed(message), ephemeral=True)


async def report_command_error(ctx: discord.ApplicationContext, exc: Exception, command: str) -> None:
    """
    Reply to a failed command. Domain errors are shown as they are; anything
    else is logged with its traceback and reported generically.

    Must be called from inside the ``except`` block that caught ``exc``.
    """
    if isinstance(exc, TaskcordError):
        await respond_error(ctx, str(exc))
        return
    logger.exception("Unexpected error in /%s", command)
    await respond_error(ctx, "Something went wrong while running that command.")


def is_task_manager(member: Union[discord.User, discord.Member], settings: ServerSettings) -> bool:
    """Managers may change any task in the server."""
    if has_elevated_permissions(member):
        return True
    return any(settings.has_manager_role(role_id) for role_id in role_ids_of(member))
