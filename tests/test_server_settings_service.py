import pytest

from taskcord.datatypes.config_datatypes import AuditAction
from taskcord.datatypes.server_settings import CommandAccess, RoleKind
from taskcord.datatypes.task_datatypes import TaskPriority
from taskcord.errors import ConfigValidationError
from taskcord.services.config_service import ConfigService

from conftest import ALICE, GUILD, OTHER_GUILD


@pytest.mark.asyncio
async def test_unsaved_guild_gets_defaults(settings_service):
    settings = await settings_service.get(GUILD)
    assert settings.guild_id == GUILD
    assert settings.max_tasks_per_user == 5
    assert await settings_service.list_guild_ids() == []


@pytest.mark.asyncio
async def test_update_persists_and_audits(db, cache, settings_service):
    await settings_service.update(GUILD, ALICE, timezone="UTC", default_task_priority="high")

    cache.invalidate()
    settings = await settings_service.get(GUILD)
    assert settings.timezone == "UTC"
    assert settings.default_task_priority is TaskPriority.HIGH
    assert await settings_service.list_guild_ids() == [GUILD]

    audit = await ConfigService(db=db, cache=cache, cache_enabled=False).get_audit_log(GUILD)
    keys = {entry.key for entry in audit}
    assert keys == {"settings.timezone", "settings.default_task_priority"}
    assert all(entry.changed_by == ALICE for entry in audit)


@pytest.mark.asyncio
async def test_update_without_change_writes_no_audit(db, cache, settings_service):
    await settings_service.update(GUILD, ALICE, max_tasks_per_user=5)
    audit = await ConfigService(db=db, cache=cache).get_audit_log(GUILD)
    assert audit == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"timezone": "Mars/Olympus"},
        {"default_task_priority": "SOMEDAY"},
        {"max_tasks_per_user": 0},
        {"default_reminder_frequency": 1},
        {"max_tasks_per_user": "many"},
        {"notification_channel_id": "general"},
        {"nickname": "x"},
    ],
)
async def test_invalid_updates_are_rejected(settings_service, fields):
    with pytest.raises(ConfigValidationError):
        await settings_service.update(GUILD, ALICE, **fields)


@pytest.mark.asyncio
async def test_set_feature(settings_service):
    settings = await settings_service.set_feature(GUILD, "task_templates", True, ALICE)
    assert settings.is_feature_enabled("task_templates")
    with pytest.raises(ConfigValidationError):
        await settings_service.set_feature(GUILD, "teleport", True, ALICE)


@pytest.mark.asyncio
async def test_categories(cache, settings_service):
    assert await settings_service.add_category(GUILD, "Garden", ALICE) is True
    assert await settings_service.add_category(GUILD, "garden", ALICE) is False
    assert await settings_service.remove_category(GUILD, "Events", ALICE) is True
    assert await settings_service.remove_category(GUILD, "Events", ALICE) is False

    cache.invalidate()
    settings = await settings_service.get(GUILD)
    assert settings.custom_categories == ["General", "Maintenance", "Garden"]

    with pytest.raises(ConfigValidationError):
        await settings_service.add_category(GUILD, "   ", ALICE)


@pytest.mark.asyncio
async def test_role_lists(cache, settings_service):
    await settings_service.set_role_list(GUILD, RoleKind.MANAGER, [10, 11], ALICE)
    await settings_service.set_role_list(GUILD, RoleKind.ADMIN, [20], ALICE)
    cache.invalidate()
    settings = await settings_service.get(GUILD)
    assert settings.manager_role_ids == {10, 11}
    assert settings.admin_role_ids == {20}
    assert settings.has_manager_role(20)


@pytest.mark.asyncio
async def test_command_permissions(cache, settings_service):
    await settings_service.set_command_permission(GUILD, "/Task  Create", 10, CommandAccess.DENY, ALICE)
    settings = await settings_service.get(GUILD)
    assert settings.command_permissions["task create"].denied_roles == {10}

    await settings_service.set_command_permission(GUILD, "task create", 10, CommandAccess.ALLOW, ALICE)
    cache.invalidate()
    settings = await settings_service.get(GUILD)
    perm = settings.command_permissions["task create"]
    assert perm.allowed_roles == {10}
    assert perm.denied_roles == set()

    assert await settings_service.clear_command_permission(GUILD, "task create", 10, ALICE) is True
    assert await settings_service.clear_command_permission(GUILD, "task create", 10, ALICE) is False
    assert "task create" not in (await settings_service.get(GUILD)).command_permissions


@pytest.mark.asyncio
async def test_delete_guild_purges_only_that_guild(db, cache, settings_service):
    await settings_service.update(GUILD, ALICE, timezone="UTC")
    await settings_service.update(OTHER_GUILD, ALICE, timezone="UTC")
    config = ConfigService(db=db, cache=cache)

    assert await settings_service.delete_guild(GUILD) is True

    assert (await settings_service.get(GUILD)).timezone != "UTC"
    assert (await settings_service.get(OTHER_GUILD)).timezone == "UTC"
    assert await config.get_audit_log(GUILD) == []
    remaining = await config.get_audit_log(OTHER_GUILD)
    assert [entry.action for entry in remaining] == [AuditAction.UPDATE]


@pytest.mark.asyncio
async def test_non_numeric_channel_names_the_field(settings_service):
    with pytest.raises(ConfigValidationError, match="notification_channel_id must be a channel id"):
        await settings_service.update(GUILD, ALICE, notification_channel_id="#general")
    assert (await settings_service.get(GUILD)).notification_channel_id is None
