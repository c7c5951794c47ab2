from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from taskcord.cog.commands import task_cmds
from taskcord.datatypes.task_datatypes import TaskStatus

from conftest import ALICE, BOB, GUILD, make_ctx, make_member

CAROL = 333333333333333333


@pytest.fixture
def cog(monkeypatch, task_service, settings_service, permission_service):
    monkeypatch.setattr(task_cmds, "task_service", task_service)
    monkeypatch.setattr(task_cmds, "server_settings_service", settings_service)
    monkeypatch.setattr(task_cmds, "permission_service", permission_service)
    return task_cmds.TaskCog(SimpleNamespace())


async def _create(cog, ctx, title="Take out the bins", assignee=None, deadline=None):
    await task_cmds.TaskCog.create.callback(cog, ctx, title, "", assignee, None, None, deadline, None)


def _reply(ctx):
    return ctx.respond.await_args.kwargs


def test_setup_adds_cog():
    captured = {}
    task_cmds.setup(SimpleNamespace(add_cog=lambda cog: captured.setdefault("cog", cog)))
    assert isinstance(captured["cog"], task_cmds.TaskCog)


@pytest.mark.asyncio
async def test_commands_need_a_guild(cog):
    ctx = make_ctx(guild_id=None)
    await _create(cog, ctx)
    assert _reply(ctx)["embed"].description == "Tasks can only be managed inside a server."
    assert _reply(ctx)["ephemeral"] is True


@pytest.mark.asyncio
async def test_create_and_view(cog, task_service):
    ctx = make_ctx()
    await _create(cog, ctx, deadline="2099-01-01 12:00")
    assert _reply(ctx)["content"] == "✅ Created task #1"

    stored = await task_service.get_task(GUILD, 1)
    assert stored.created_by == ALICE
    assert stored.deadline is not None

    view_ctx = make_ctx()
    await task_cmds.TaskCog.view.callback(cog, view_ctx, 1)
    assert _reply(view_ctx)["embed"].title == "#1 Take out the bins"


@pytest.mark.asyncio
async def test_bad_deadline_is_reported(cog):
    ctx = make_ctx()
    await _create(cog, ctx, deadline="next friday")
    assert _reply(ctx)["embed"].description.startswith("Could not read deadline")


@pytest.mark.asyncio
async def test_only_managers_create_for_others(cog):
    ctx = make_ctx()
    await _create(cog, ctx, assignee=make_member(BOB))
    assert _reply(ctx)["embed"].description == "Only managers can create tasks for other members."

    manager_ctx = make_ctx(user=make_member(manage_messages=True))
    await _create(cog, manager_ctx, assignee=make_member(BOB))
    assert _reply(manager_ctx)["content"] == "✅ Created task #1"


@pytest.mark.asyncio
async def test_status_allowed_for_assignee_only(cog, task_service):
    await _create(cog, make_ctx())

    outsider = make_ctx(user=make_member(CAROL))
    await task_cmds.TaskCog.status.callback(cog, outsider, 1, "IN_PROGRESS")
    assert _reply(outsider)["embed"].description == "You don't have permission to use `/task status`."

    owner = make_ctx()
    await task_cmds.TaskCog.status.callback(cog, owner, 1, "IN_PROGRESS")
    assert _reply(owner)["content"] == "✅ Task #1 is now **in progress**"
    assert (await task_service.get_task(GUILD, 1)).status is TaskStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_invalid_transition_is_shown(cog):
    await _create(cog, make_ctx())
    ctx = make_ctx()
    await task_cmds.TaskCog.status.callback(cog, ctx, 1, "COMPLETED")
    assert _reply(ctx)["embed"].description == "Invalid status transition from PENDING to COMPLETED"


@pytest.mark.asyncio
async def test_missing_task(cog):
    ctx = make_ctx()
    await task_cmds.TaskCog.view.callback(cog, ctx, 42)
    assert _reply(ctx)["embed"].description == "Task 42 not found"


@pytest.mark.asyncio
async def test_assign_and_delete_need_edit_rights(cog, task_service):
    await _create(cog, make_ctx())

    outsider = make_ctx(user=make_member(CAROL))
    await task_cmds.TaskCog.assign.callback(cog, outsider, 1, make_member(CAROL))
    assert "permission" in _reply(outsider)["embed"].description

    creator = make_ctx()
    await task_cmds.TaskCog.assign.callback(cog, creator, 1, make_member(BOB))
    assert (await task_service.get_task(GUILD, 1)).assignee_id == BOB

    admin = make_ctx(user=make_member(CAROL, administrator=True))
    await task_cmds.TaskCog.delete.callback(cog, admin, 1)
    assert _reply(admin)["embed"].description == "Deleted task #1 (Take out the bins)."
    assert await task_service.list_tasks(GUILD, include_closed=True) == []


@pytest.mark.asyncio
async def test_update_deadline_and_list(cog, task_service):
    await _create(cog, make_ctx())

    ctx = make_ctx()
    await task_cmds.TaskCog.update.callback(cog, ctx, 1, "Bins and recycling", None, "HIGH", None, 0)
    assert _reply(ctx)["content"] == "✅ Updated task #1"
    stored = await task_service.get_task(GUILD, 1)
    assert stored.title == "Bins and recycling"
    assert stored.reminder_frequency is None

    deadline_ctx = make_ctx()
    await task_cmds.TaskCog.deadline.callback(cog, deadline_ctx, 1, None)
    assert _reply(deadline_ctx)["embed"].description == "Task #1 no longer has a deadline."

    list_ctx = make_ctx()
    await task_cmds.TaskCog.list_tasks.callback(cog, list_ctx, None, None, False)
    assert "Bins and recycling" in _reply(list_ctx)["embed"].description


@pytest.mark.asyncio
async def test_unexpected_errors_are_hidden(cog, monkeypatch):
    get_task = AsyncMock(side_effect=RuntimeError("boom"))
    monkeypatch.setattr(task_cmds.task_service, "get_task", get_task)
    ctx = make_ctx()
    await task_cmds.TaskCog.history.callback(cog, ctx, 1)
    assert _reply(ctx)["embed"].description == "Something went wrong while running that command."
    get_task.assert_awaited_once()
