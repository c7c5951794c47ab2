"""
Task cog: the /task command group.

Everyone may create tasks and look them up. Changing a task is open to its
creator (and, for status changes, its assignee); managers, admins and members
with Manage Server/Manage Messages may change any task. Per-command role
overrides and permission grants from /config take precedence over these
defaults.

All replies are ephemeral. Errors raised by the task service are shown to the
invoker as they are.
"""

import discord
from discord import Option
from discord.ext import commands

from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.server_settings import ServerSettings
from taskcord.datatypes.task_datatypes import Task, TaskPriority, TaskStatus
from taskcord.services.permission_service import permission_service
from taskcord.services.server_settings_service import server_settings_service
from taskcord.services.task_service import task_service
from taskcord.ui.embeds import (
    build_history_embed,
    build_task_embed,
    build_task_list_embed,
    success_embed,
)
from taskcord.util.discord_utils import (
    is_task_manager,
    report_command_error,
    respond_error,
)
from taskcord.util.format_utils import format_deadline, parse_deadline
from taskcord.util.logger import get_logger

logger = get_logger("task_commands")

PRIORITY_CHOICES = [
    discord.OptionChoice(name=priority.value.title(), value=priority.value)
    for priority in TaskPriority
]

STATUS_CHOICES = [
    discord.OptionChoice(name=status.value.replace("_", " ").title(), value=status.value)
    for status in TaskStatus
]


class TaskCog(commands.Cog):
    """Create, assign and track server tasks."""

    task = discord.SlashCommandGroup("task", "Create and track server tasks")

    def __init__(self, discord_bot_instance):
        self.discord_bot_instance = discord_bot_instance
        logger.info("[TASK CMDS] Task cog loaded")

    async def _ensure_guild_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await respond_error(ctx, "Tasks can only be managed inside a server.")
            return False
        return True

    async def _check_access(self, ctx: discord.ApplicationContext, command: str, default: bool) -> bool:
        try:
            await permission_service.require_command(GuildID(ctx.guild_id), ctx.user, command, default)
        except Exception as exc:
            await report_command_error(ctx, exc, command)
            return False
        return True

    def _may_edit(self, ctx: discord.ApplicationContext, task: Task, settings: ServerSettings) -> bool:
        return is_task_manager(ctx.user, settings) or task.created_by == ctx.user.id

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    @task.command(name="create", description="Create a new task.")
    async def create(
        self,
        ctx: discord.ApplicationContext,
        title: Option(str, "Short title for the task.", max_length=100),  # type: ignore
        description: Option(str, "What needs to be done.", default=""),  # type: ignore
        assignee: Option(discord.Member, "Who should do it (defaults to you).", default=None),  # type: ignore
        priority: Option(str, "Task priority.", choices=PRIORITY_CHOICES, default=None),  # type: ignore
        category: Option(str, "Task category.", default=None),  # type: ignore
        deadline: Option(str, "Deadline as YYYY-MM-DD or YYYY-MM-DD HH:MM (server time).", default=None),  # type: ignore
        reminder_minutes: Option(int, "Minutes between reminders, 0 for none.", min_value=0, default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        if not await self._check_access(ctx, "task create", True):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            if assignee is not None and assignee.id != ctx.user.id and not is_task_manager(ctx.user, settings):
                await permission_service.require_command(
                    guild_id, ctx.user, "task assign", False,
                    message="Only managers can create tasks for other members.",
                )
            created = await task_service.create_task(
                guild_id,
                UserID.from_user(ctx.user),
                title=title,
                description=description,
                assignee_id=UserID.from_user(assignee) if assignee else None,
                priority=TaskPriority(priority) if priority else None,
                category=category,
                deadline=parse_deadline(deadline, settings.timezone) if deadline else None,
                reminder_frequency=reminder_minutes,
            )
            await ctx.respond(
                content=f"✅ Created task #{created.id}",
                embed=build_task_embed(created, settings.timezone),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "task create")

    @task.command(name="list", description="List tasks in this server.")
    async def list_tasks(
        self,
        ctx: discord.ApplicationContext,
        status: Option(str, "Only tasks with this status.", choices=STATUS_CHOICES, default=None),  # type: ignore
        assignee: Option(discord.Member, "Only tasks assigned to this member.", default=None),  # type: ignore
        include_closed: Option(bool, "Include completed and cancelled tasks.", default=False),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            tasks = await task_service.list_tasks(
                guild_id,
                status=TaskStatus(status) if status else None,
                assignee_id=UserID.from_user(assignee) if assignee else None,
                include_closed=include_closed,
            )
            title = f"📋 Tasks for {assignee.display_name}" if assignee else "📋 Tasks"
            await ctx.respond(embed=build_task_list_embed(tasks, settings.timezone, title), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "task list")

    @task.command(name="view", description="Show one task in detail.")
    async def view(
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
            await ctx.respond(embed=build_task_embed(found, settings.timezone), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "task view")

    @task.command(name="history", description="Show a task's status history.")
    async def history(
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
            changes = await task_service.get_history(guild_id, task_id)
            await ctx.respond(embed=build_history_embed(found, changes, settings.timezone), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "task history")

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    @task.command(name="status", description="Move a task to a new status.")
    async def status(
        self,
        ctx: discord.ApplicationContext,
        task_id: Option(int, "Task number.", min_value=1),  # type: ignore
        new_status: Option(str, "The new status.", choices=STATUS_CHOICES),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            found = await task_service.get_task(guild_id, task_id)
            involved = ctx.user.id in (found.assignee_id, found.created_by)
            if not await self._check_access(ctx, "task status", involved or is_task_manager(ctx.user, settings)):
                return
            updated = await task_service.update_status(
                guild_id, task_id, TaskStatus(new_status), UserID.from_user(ctx.user)
            )
            await ctx.respond(
                content=f"✅ Task #{task_id} is now **{updated.status.value.replace('_', ' ').lower()}**",
                embed=build_task_embed(updated, settings.timezone),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "task status")

    @task.command(name="assign", description="Assign a task to a member.")
    async def assign(
        self,
        ctx: discord.ApplicationContext,
        task_id: Option(int, "Task number.", min_value=1),  # type: ignore
        member: Option(discord.Member, "Who should do it."),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            found = await task_service.get_task(guild_id, task_id)
            if not await self._check_access(ctx, "task assign", self._may_edit(ctx, found, settings)):
                return
            updated = await task_service.assign_task(
                guild_id, task_id, UserID.from_user(member), UserID.from_user(ctx.user)
            )
            await ctx.respond(
                embed=success_embed(f"Task #{updated.id} assigned to {member.mention}."),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "task assign")

    @task.command(name="unassign", description="Remove the assignee from a task.")
    async def unassign(
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
            if not await self._check_access(ctx, "task unassign", self._may_edit(ctx, found, settings)):
                return
            await task_service.unassign_task(guild_id, task_id, UserID.from_user(ctx.user))
            await ctx.respond(embed=success_embed(f"Task #{task_id} is no longer assigned."), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "task unassign")

    @task.command(name="deadline", description="Set or clear a task's deadline.")
    async def deadline(
        self,
        ctx: discord.ApplicationContext,
        task_id: Option(int, "Task number.", min_value=1),  # type: ignore
        when: Option(str, "YYYY-MM-DD or YYYY-MM-DD HH:MM (server time); leave empty to clear.", default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            found = await task_service.get_task(guild_id, task_id)
            if not await self._check_access(ctx, "task deadline", self._may_edit(ctx, found, settings)):
                return
            new_deadline = parse_deadline(when, settings.timezone) if when else None
            updated = await task_service.update_task(
                guild_id, task_id, UserID.from_user(ctx.user), deadline=new_deadline
            )
            message = (
                f"Task #{task_id} is due {format_deadline(updated.deadline, settings.timezone)}."
                if updated.deadline else f"Task #{task_id} no longer has a deadline."
            )
            await ctx.respond(embed=success_embed(message), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "task deadline")

    @task.command(name="update", description="Change a task's details.")
    async def update(
        self,
        ctx: discord.ApplicationContext,
        task_id: Option(int, "Task number.", min_value=1),  # type: ignore
        title: Option(str, "New title.", max_length=100, default=None),  # type: ignore
        description: Option(str, "New description.", default=None),  # type: ignore
        priority: Option(str, "New priority.", choices=PRIORITY_CHOICES, default=None),  # type: ignore
        category: Option(str, "New category.", default=None),  # type: ignore
        reminder_minutes: Option(int, "Minutes between reminders, 0 for none.", min_value=0, default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return

        guild_id = GuildID(ctx.guild_id)
        try:
            settings = await server_settings_service.get(guild_id)
            found = await task_service.get_task(guild_id, task_id)
            if not await self._check_access(ctx, "task update", self._may_edit(ctx, found, settings)):
                return
            kwargs = {}
            if reminder_minutes is not None:
                kwargs["reminder_frequency"] = reminder_minutes
            updated = await task_service.update_task(
                guild_id,
                task_id,
                UserID.from_user(ctx.user),
                title=title,
                description=description,
                priority=TaskPriority(priority) if priority else None,
                category=category,
                **kwargs,
            )
            await ctx.respond(
                content=f"✅ Updated task #{task_id}",
                embed=build_task_embed(updated, settings.timezone),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "task update")

    @task.command(name="delete", description="Delete a task permanently.")
    async def delete(
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
            if not await self._check_access(ctx, "task delete", self._may_edit(ctx, found, settings)):
                return
            await task_service.delete_task(guild_id, task_id, UserID.from_user(ctx.user))
            await ctx.respond(embed=success_embed(f"Deleted task #{task_id} ({found.title})."), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "task delete")


def setup(discord_bot_instance):
    discord_bot_instance.add_cog(TaskCog(discord_bot_instance))
