"""
Config cog: the /config command group.

Access follows the member's configuration level:
- READ: everyone; view settings, roles, categories, permissions, audit log and values
- WRITE: manager roles and ``config.write`` grants; change settings, categories and values
- ADMIN: administrators, Manage Server, admin roles and ``config.admin`` grants;
  role lists, command permissions, permission grants and deleting values

Responses are ephemeral to avoid leaking configuration in public channels.
"""

import re
from typing import List, Optional

import discord
from discord import Option
from discord.ext import commands

from taskcord.datatypes.config_datatypes import ConfigPermissionLevel, ConfigValueType
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.permission_datatypes import Permission
from taskcord.datatypes.server_settings import (
    EDITABLE_SETTINGS,
    FEATURE_NAMES,
    CommandAccess,
    RoleKind,
    ServerSettings,
)
from taskcord.services.config_service import config_service
from taskcord.services.permission_service import permission_service
from taskcord.services.server_settings_service import server_settings_service
from taskcord.ui.embeds import (
    build_audit_embed,
    build_categories_embed,
    build_config_value_embed,
    build_permissions_embed,
    build_roles_embed,
    build_server_config_embed,
    build_settings_embed,
    success_embed,
)
from taskcord.util.discord_utils import report_command_error, respond_error
from taskcord.util.logger import get_logger
from taskcord.validation.config_validation import parse_config_input

logger = get_logger("config_commands")

SETTING_CHOICES = list(EDITABLE_SETTINGS) + [f"features.{name}" for name in FEATURE_NAMES]

ROLE_KIND_CHOICES = [
    discord.OptionChoice(name="Admin roles", value=RoleKind.ADMIN.value),
    discord.OptionChoice(name="Manager roles", value=RoleKind.MANAGER.value),
]

ACCESS_CHOICES = ["allow", "deny", "clear"]

CATEGORY_ACTIONS = ["list", "add", "remove"]

VALUE_TYPE_CHOICES = [value_type.value for value_type in ConfigValueType]

PERMISSION_CHOICES = [permission.value for permission in Permission]

_SNOWFLAKE_RE = re.compile(r"\d{15,20}")

_CLEAR_WORDS = {"", "none", "off", "clear"}


def parse_role_ids(raw: str) -> List[int]:
    """Role ids from a list of mentions or raw ids; ``none`` clears the list."""
    if raw.strip().lower() in _CLEAR_WORDS:
        return []
    return [int(match) for match in _SNOWFLAKE_RE.findall(raw)]


def parse_setting_value(setting: str, raw: str):
    """Turn the text typed for ``setting`` into what the settings service accepts."""
    raw = raw.strip()
    if setting.startswith("features."):
        return parse_config_input(raw, ConfigValueType.BOOLEAN)
    if setting == "notification_channel_id":
        if raw.lower() in _CLEAR_WORDS:
            return None
        match = _SNOWFLAKE_RE.search(raw)
        return match.group(0) if match else raw
    return raw


class ConfigCog(commands.Cog):
    """Server settings, permissions and free-form configuration values."""

    config = discord.SlashCommandGroup("config", "Configure Taskcord for this server")

    def __init__(self, discord_bot_instance):
        self.discord_bot_instance = discord_bot_instance
        logger.info("[CONFIG CMDS] Config cog loaded")

    async def _ensure_guild_context(self, ctx: discord.ApplicationContext) -> bool:
        if not ctx.guild_id:
            await respond_error(ctx, "Configuration is only available inside a server.")
            return False
        return True

    async def _access(
        self, ctx: discord.ApplicationContext, required: ConfigPermissionLevel
    ) -> tuple[Optional[ServerSettings], ConfigPermissionLevel]:
        """
        Load settings and the invoker's level. Replies and returns ``(None, level)``
        when the level is below ``required``.
        """
        settings = await server_settings_service.get(GuildID(ctx.guild_id))
        level = await permission_service.config_permission_level(ctx.user, settings)
        if level < required:
            await respond_error(ctx, f"This needs {required.name.lower()} access to the configuration.")
            return None, level
        return settings, level

    # ------------------------------------------------------------------
    # Server settings
    # ------------------------------------------------------------------

    @config.command(name="view", description="Show this server's task settings.")
    async def view(self, ctx: discord.ApplicationContext) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, _ = await self._access(ctx, ConfigPermissionLevel.READ)
            if settings is None:
                return
            await ctx.respond(embed=build_settings_embed(settings), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config view")

    @config.command(name="settings", description="Change a server setting or toggle a feature.")
    async def settings(
        self,
        ctx: discord.ApplicationContext,
        setting: Option(str, "Setting to change.", choices=SETTING_CHOICES),  # type: ignore
        value: Option(str, "New value (true/false for features, 'none' clears the channel)."),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            current, _ = await self._access(ctx, ConfigPermissionLevel.WRITE)
            if current is None:
                return
            guild_id = GuildID(ctx.guild_id)
            user_id = UserID.from_user(ctx.user)
            parsed = parse_setting_value(setting, value)
            if setting.startswith("features."):
                updated = await server_settings_service.set_feature(
                    guild_id, setting.split(".", 1)[1], parsed, user_id
                )
            else:
                updated = await server_settings_service.update(guild_id, user_id, **{setting: parsed})
            await ctx.respond(
                content=f"✅ Updated `{setting}`",
                embed=build_settings_embed(updated),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "config settings")

    @config.command(name="roles", description="Show or replace the admin and manager roles.")
    async def roles(
        self,
        ctx: discord.ApplicationContext,
        kind: Option(str, "Which role list to replace.", choices=ROLE_KIND_CHOICES, default=None),  # type: ignore
        role_list: Option(str, "Role mentions or ids; 'none' clears the list.", default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            if kind is None or role_list is None:
                settings, _ = await self._access(ctx, ConfigPermissionLevel.READ)
                if settings is not None:
                    await ctx.respond(embed=build_roles_embed(settings), ephemeral=True)
                return

            settings, _ = await self._access(ctx, ConfigPermissionLevel.ADMIN)
            if settings is None:
                return
            updated = await server_settings_service.set_role_list(
                GuildID(ctx.guild_id), RoleKind(kind), parse_role_ids(role_list), UserID.from_user(ctx.user)
            )
            await ctx.respond(embed=build_roles_embed(updated), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config roles")

    @config.command(name="categories", description="List, add or remove task categories.")
    async def categories(
        self,
        ctx: discord.ApplicationContext,
        action: Option(str, "What to do.", choices=CATEGORY_ACTIONS, default="list"),  # type: ignore
        name: Option(str, "Category name.", max_length=32, default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            if action == "list":
                settings, _ = await self._access(ctx, ConfigPermissionLevel.READ)
                if settings is not None:
                    await ctx.respond(embed=build_categories_embed(settings), ephemeral=True)
                return

            if not name:
                await respond_error(ctx, "Give the category name to add or remove.")
                return
            settings, _ = await self._access(ctx, ConfigPermissionLevel.WRITE)
            if settings is None:
                return

            guild_id = GuildID(ctx.guild_id)
            user_id = UserID.from_user(ctx.user)
            if action == "add":
                changed = await server_settings_service.add_category(guild_id, name, user_id)
                message = f"Added category **{name}**." if changed else f"**{name}** already exists."
            else:
                changed = await server_settings_service.remove_category(guild_id, name, user_id)
                message = f"Removed category **{name}**." if changed else f"**{name}** is not a category."
            if changed:
                await ctx.respond(embed=success_embed(message), ephemeral=True)
            else:
                await respond_error(ctx, message)
        except Exception as exc:
            await report_command_error(ctx, exc, "config categories")

    @config.command(name="permissions", description="Show or change who may use a command.")
    async def permissions(
        self,
        ctx: discord.ApplicationContext,
        command: Option(str, "Command name, e.g. 'task delete'.", default=None),  # type: ignore
        role: Option(discord.Role, "Role to allow or deny.", default=None),  # type: ignore
        access: Option(str, "Allow, deny or clear the override.", choices=ACCESS_CHOICES, default="allow"),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        guild_id = GuildID(ctx.guild_id)
        try:
            if command is None or role is None:
                settings, _ = await self._access(ctx, ConfigPermissionLevel.READ)
                if settings is not None:
                    roles = await permission_service.list_roles(guild_id)
                    await ctx.respond(embed=build_permissions_embed(settings, roles), ephemeral=True)
                return

            settings, _ = await self._access(ctx, ConfigPermissionLevel.ADMIN)
            if settings is None:
                return
            user_id = UserID.from_user(ctx.user)
            if access == "clear":
                cleared = await server_settings_service.clear_command_permission(guild_id, command, role.id, user_id)
                if not cleared:
                    await respond_error(ctx, f"{role.mention} has no override for `/{command}`.")
                    return
                message = f"Cleared the override for {role.mention} on `/{command}`."
            else:
                await server_settings_service.set_command_permission(
                    guild_id, command, role.id, CommandAccess(access), user_id
                )
                verb = "may" if access == "allow" else "may not"
                message = f"{role.mention} {verb} use `/{command}`."
            await ctx.respond(embed=success_embed(message), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config permissions")

    @config.command(name="audit", description="Show recent configuration changes.")
    async def audit(
        self,
        ctx: discord.ApplicationContext,
        key: Option(str, "Only changes to this key.", default=None),  # type: ignore
        limit: Option(int, "How many entries to show.", min_value=1, max_value=50, default=10),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, level = await self._access(ctx, ConfigPermissionLevel.READ)
            if settings is None:
                return
            entries = await config_service.get_audit_log(GuildID(ctx.guild_id), key=key, limit=limit, level=level)
            await ctx.respond(embed=build_audit_embed(entries, settings.timezone), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config audit")

    # ------------------------------------------------------------------
    # Free-form values
    # ------------------------------------------------------------------

    @config.command(name="get", description="Show one configuration value, or all of them.")
    async def get_value(
        self,
        ctx: discord.ApplicationContext,
        key: Option(str, "Configuration key.", default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        guild_id = GuildID(ctx.guild_id)
        try:
            settings, level = await self._access(ctx, ConfigPermissionLevel.READ)
            if settings is None:
                return
            if key is None:
                values = await config_service.get_server_config(guild_id, level=level)
                await ctx.respond(embed=build_server_config_embed(values), ephemeral=True)
                return
            value = await config_service.get_value(guild_id, key, level=level)
            await ctx.respond(embed=build_config_value_embed(value, key), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config get")

    @config.command(name="set", description="Set a configuration value.")
    async def set_value(
        self,
        ctx: discord.ApplicationContext,
        key: Option(str, "Configuration key (lowercase, dots and underscores)."),  # type: ignore
        value_type: Option(str, "Type of the value.", choices=VALUE_TYPE_CHOICES),  # type: ignore
        value: Option(str, "The value; JSON for arrays and objects."),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, level = await self._access(ctx, ConfigPermissionLevel.WRITE)
            if settings is None:
                return
            parsed_type = ConfigValueType(value_type)
            stored = await config_service.set_value(
                GuildID(ctx.guild_id),
                key,
                parse_config_input(value, parsed_type),
                parsed_type,
                UserID.from_user(ctx.user),
                level=level,
            )
            await ctx.respond(
                content=f"✅ Saved `{key}`",
                embed=build_config_value_embed(stored, key),
                ephemeral=True,
            )
        except Exception as exc:
            await report_command_error(ctx, exc, "config set")

    @config.command(name="unset", description="Delete a configuration value.")
    async def unset(
        self,
        ctx: discord.ApplicationContext,
        key: Option(str, "Configuration key."),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, level = await self._access(ctx, ConfigPermissionLevel.ADMIN)
            if settings is None:
                return
            await config_service.delete_value(GuildID(ctx.guild_id), key, UserID.from_user(ctx.user), level=level)
            await ctx.respond(embed=success_embed(f"Deleted `{key}`."), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config unset")

    # ------------------------------------------------------------------
    # Permission grants
    # ------------------------------------------------------------------

    @config.command(name="role-grant", description="Grant a permission to a role.")
    async def role_grant(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role receiving the permission."),  # type: ignore
        permission: Option(str, "Permission to grant.", choices=PERMISSION_CHOICES),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, _ = await self._access(ctx, ConfigPermissionLevel.ADMIN)
            if settings is None:
                return
            added = await permission_service.grant(
                GuildID(ctx.guild_id), role.id, Permission(permission), UserID.from_user(ctx.user)
            )
            if added:
                await ctx.respond(embed=success_embed(f"{role.mention} now has `{permission}`."), ephemeral=True)
            else:
                await respond_error(ctx, f"{role.mention} already has `{permission}`.")
        except Exception as exc:
            await report_command_error(ctx, exc, "config role-grant")

    @config.command(name="role-revoke", description="Take a permission away from a role.")
    async def role_revoke(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role losing the permission."),  # type: ignore
        permission: Option(str, "Permission to revoke.", choices=PERMISSION_CHOICES),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, _ = await self._access(ctx, ConfigPermissionLevel.ADMIN)
            if settings is None:
                return
            removed = await permission_service.revoke(
                GuildID(ctx.guild_id), role.id, Permission(permission), UserID.from_user(ctx.user)
            )
            if removed:
                await ctx.respond(embed=success_embed(f"Revoked `{permission}` from {role.mention}."), ephemeral=True)
            else:
                await respond_error(ctx, f"{role.mention} does not have `{permission}` directly.")
        except Exception as exc:
            await report_command_error(ctx, exc, "config role-revoke")

    @config.command(name="role-inherit", description="Make a role inherit another role's permissions.")
    async def role_inherit(
        self,
        ctx: discord.ApplicationContext,
        role: Option(discord.Role, "Role that inherits."),  # type: ignore
        parent: Option(discord.Role, "Role to inherit from; leave empty to stop inheriting.", default=None),  # type: ignore
    ) -> None:
        if not await self._ensure_guild_context(ctx):
            return
        try:
            settings, _ = await self._access(ctx, ConfigPermissionLevel.ADMIN)
            if settings is None:
                return
            await permission_service.set_inheritance(
                GuildID(ctx.guild_id), role.id, parent.id if parent else None, UserID.from_user(ctx.user)
            )
            message = (
                f"{role.mention} now inherits from {parent.mention}."
                if parent else f"{role.mention} no longer inherits permissions."
            )
            await ctx.respond(embed=success_embed(message), ephemeral=True)
        except Exception as exc:
            await report_command_error(ctx, exc, "config role-inherit")


def setup(discord_bot_instance):
    discord_bot_instance.add_cog(ConfigCog(discord_bot_instance))
