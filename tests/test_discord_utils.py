"""Tests for discord_utils module."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import discord
import pytest

from conftest import GUILD, make_ctx, make_member
from taskcord.datatypes.server_settings import ServerSettings
from taskcord.errors import TaskNotFoundError
from taskcord.util.discord_utils import (
    has_elevated_permissions,
    is_retryable_error,
    is_task_manager,
    report_command_error,
    role_ids_of,
)


def _http_error(status: int) -> discord.HTTPException:
    return discord.HTTPException(MagicMock(status=status, reason="reason"), "failed")


class TestElevatedPermissions:
    def test_plain_member(self):
        assert has_elevated_permissions(make_member()) is False

    @pytest.mark.parametrize("flag", ["administrator", "manage_guild", "manage_messages"])
    def test_each_flag(self, flag):
        assert has_elevated_permissions(make_member(**{flag: True})) is True

    def test_non_member_user(self):
        user = SimpleNamespace(id=1, guild_permissions=SimpleNamespace(administrator=True))
        assert has_elevated_permissions(user) is False


class TestTaskManager:
    def test_manager_role(self):
        settings = ServerSettings(guild_id=GUILD, manager_role_ids={42})
        assert is_task_manager(make_member(role_ids=(42,)), settings) is True
        assert is_task_manager(make_member(role_ids=(7,)), settings) is False

    def test_admin_role_counts_as_manager(self):
        settings = ServerSettings(guild_id=GUILD, admin_role_ids={9})
        assert is_task_manager(make_member(role_ids=(9,)), settings) is True

    def test_elevated_member(self):
        assert is_task_manager(make_member(manage_guild=True), ServerSettings(guild_id=GUILD)) is True

    def test_role_ids_of(self):
        assert role_ids_of(make_member(role_ids=(1, 2))) == {1, 2}
        assert role_ids_of(SimpleNamespace(id=1)) == set()


class TestRetryableErrors:
    @pytest.mark.parametrize("status", [500, 502, 503, 429])
    def test_transient_http(self, status):
        assert is_retryable_error(_http_error(status)) is True

    @pytest.mark.parametrize("status", [400, 403, 404])
    def test_permanent_http(self, status):
        assert is_retryable_error(_http_error(status)) is False

    def test_connection_problems(self):
        assert is_retryable_error(TimeoutError()) is True
        assert is_retryable_error(ConnectionResetError()) is True

    def test_other_errors(self):
        assert is_retryable_error(ValueError("bad input")) is False

    def test_message_text_is_ignored(self):
        assert is_retryable_error(RuntimeError("network timeout, connection lost")) is False


class TestReportCommandError:
    @pytest.mark.asyncio
    async def test_domain_error_shown(self):
        ctx = make_ctx()
        try:
            raise TaskNotFoundError(5)
        except Exception as exc:
            await report_command_error(ctx, exc, "task view")

        embed = ctx.respond.call_args.kwargs["embed"]
        assert embed.description == "Task 5 not found"
        assert ctx.respond.call_args.kwargs["ephemeral"] is True

    @pytest.mark.asyncio
    async def test_unexpected_error_hidden(self):
        ctx = make_ctx()
        try:
            raise KeyError("secret internals")
        except Exception as exc:
            await report_command_error(ctx, exc, "task view")

        embed = ctx.respond.call_args.kwargs["embed"]
        assert "secret" not in embed.description
        assert embed.description == "Something went wrong while running that command."
