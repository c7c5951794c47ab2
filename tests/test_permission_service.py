import pytest

from taskcord.datatypes.config_datatypes import ConfigPermissionLevel
from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.permission_datatypes import Permission, PermissionRole
from taskcord.datatypes.server_settings import CommandAccess, RoleKind
from taskcord.errors import ConfigValidationError, PermissionDeniedError
from taskcord.services.permission_service import resolve_from_roles

from conftest import ALICE, GUILD, make_member

MEMBER_ROLE = 10
HELPER_ROLE = 11
LEAD_ROLE = 12


@pytest.mark.asyncio
async def test_grant_and_revoke(permission_service):
    assert await permission_service.grant(GUILD, MEMBER_ROLE, Permission.TASK_CREATE, ALICE) is True
    assert await permission_service.grant(GUILD, MEMBER_ROLE, Permission.TASK_CREATE, ALICE) is False
    assert await permission_service.has_permission(GUILD, [MEMBER_ROLE], Permission.TASK_CREATE)

    assert await permission_service.revoke(GUILD, MEMBER_ROLE, Permission.TASK_CREATE, ALICE) is True
    assert await permission_service.revoke(GUILD, MEMBER_ROLE, Permission.TASK_CREATE, ALICE) is False
    assert not await permission_service.has_permission(GUILD, [MEMBER_ROLE], Permission.TASK_CREATE)


@pytest.mark.asyncio
async def test_inherited_permissions(permission_service):
    await permission_service.grant(GUILD, MEMBER_ROLE, Permission.TASK_CREATE, ALICE)
    await permission_service.grant(GUILD, HELPER_ROLE, Permission.TASK_ASSIGN, ALICE)
    await permission_service.grant(GUILD, LEAD_ROLE, Permission.TASK_DELETE, ALICE)
    await permission_service.set_inheritance(GUILD, HELPER_ROLE, MEMBER_ROLE, ALICE)
    await permission_service.set_inheritance(GUILD, LEAD_ROLE, HELPER_ROLE, ALICE)

    assert await permission_service.resolve_permissions(GUILD, LEAD_ROLE) == {
        Permission.TASK_CREATE,
        Permission.TASK_ASSIGN,
        Permission.TASK_DELETE,
    }
    assert await permission_service.resolve_permissions(GUILD, MEMBER_ROLE) == {Permission.TASK_CREATE}
    assert (await permission_service.get_role(GUILD, LEAD_ROLE)).inherits_from == HELPER_ROLE

    await permission_service.set_inheritance(GUILD, LEAD_ROLE, None, ALICE)
    assert await permission_service.resolve_permissions(GUILD, LEAD_ROLE) == {Permission.TASK_DELETE}


@pytest.mark.asyncio
async def test_inheritance_cycles_are_rejected(permission_service):
    with pytest.raises(ConfigValidationError):
        await permission_service.set_inheritance(GUILD, MEMBER_ROLE, MEMBER_ROLE, ALICE)

    await permission_service.set_inheritance(GUILD, HELPER_ROLE, MEMBER_ROLE, ALICE)
    await permission_service.set_inheritance(GUILD, LEAD_ROLE, HELPER_ROLE, ALICE)
    with pytest.raises(ConfigValidationError):
        await permission_service.set_inheritance(GUILD, MEMBER_ROLE, LEAD_ROLE, ALICE)
    assert (await permission_service.get_role(GUILD, MEMBER_ROLE)).inherits_from is None


def test_resolution_stops_at_existing_cycle():
    guild = GuildID(1)
    roles = {
        1: PermissionRole(guild, 1, {Permission.TASK_CREATE}, inherits_from=2),
        2: PermissionRole(guild, 2, {Permission.TASK_ASSIGN}, inherits_from=1),
    }
    assert resolve_from_roles(roles, 1) == {Permission.TASK_CREATE, Permission.TASK_ASSIGN}
    assert resolve_from_roles(roles, 3) == set()


@pytest.mark.asyncio
async def test_can_use_command_order(permission_service, settings_service):
    member = make_member(role_ids=[MEMBER_ROLE, HELPER_ROLE])

    assert await permission_service.can_use_command(GUILD, member, "task delete", False) is False

    await permission_service.grant(GUILD, MEMBER_ROLE, Permission.TASK_DELETE, ALICE)
    assert await permission_service.can_use_command(GUILD, member, "task delete", False) is True

    await settings_service.set_command_permission(GUILD, "task delete", HELPER_ROLE, CommandAccess.DENY, ALICE)
    assert await permission_service.can_use_command(GUILD, member, "/task delete", True) is False

    await settings_service.set_command_permission(GUILD, "task list", MEMBER_ROLE, CommandAccess.ALLOW, ALICE)
    assert await permission_service.can_use_command(GUILD, member, "task list", False) is True
    assert await permission_service.can_use_command(GUILD, make_member(), "task list", True) is True


@pytest.mark.asyncio
async def test_config_permission_levels(permission_service, settings_service):
    await settings_service.set_role_list(GUILD, RoleKind.ADMIN, [LEAD_ROLE], ALICE)
    await settings_service.set_role_list(GUILD, RoleKind.MANAGER, [HELPER_ROLE], ALICE)
    await permission_service.grant(GUILD, MEMBER_ROLE, Permission.CONFIG_WRITE, ALICE)
    settings = await settings_service.get(GUILD)

    async def level(member):
        return await permission_service.config_permission_level(member, settings)

    assert await level(make_member(administrator=True)) is ConfigPermissionLevel.ADMIN
    assert await level(make_member(manage_guild=True)) is ConfigPermissionLevel.ADMIN
    assert await level(make_member(role_ids=[LEAD_ROLE])) is ConfigPermissionLevel.ADMIN
    assert await level(make_member(role_ids=[HELPER_ROLE])) is ConfigPermissionLevel.WRITE
    assert await level(make_member(role_ids=[MEMBER_ROLE])) is ConfigPermissionLevel.WRITE
    assert await level(make_member(role_ids=[99])) is ConfigPermissionLevel.READ


@pytest.mark.asyncio
async def test_require_command_raises_when_denied(permission_service):
    member = make_member(role_ids=[MEMBER_ROLE])

    with pytest.raises(PermissionDeniedError, match="You don't have permission to use `/task delete`.") as excinfo:
        await permission_service.require_command(GUILD, member, "/Task  Delete", False)
    assert excinfo.value.command == "task delete"

    with pytest.raises(PermissionDeniedError, match="Managers only"):
        await permission_service.require_command(GUILD, member, "task delete", False, message="Managers only")

    await permission_service.grant(GUILD, MEMBER_ROLE, Permission.TASK_DELETE, ALICE)
    await permission_service.require_command(GUILD, member, "task delete", False)
