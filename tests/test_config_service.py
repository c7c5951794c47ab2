import pytest

from taskcord.datatypes.config_datatypes import AuditAction, ConfigPermissionLevel, ConfigValueType
from taskcord.errors import ConfigNotFoundError, ConfigPermissionError, ConfigValidationError
from taskcord.validation.config_validation import ConfigUpdateDto

from conftest import ALICE, BOB, GUILD, OTHER_GUILD


@pytest.mark.asyncio
async def test_set_and_get_value(config_service):
    await config_service.set_value(GUILD, "standup.time", "09:30", ConfigValueType.STRING, ALICE)
    value = await config_service.get_value(GUILD, "standup.time")
    assert value.value == "09:30"
    assert value.type is ConfigValueType.STRING
    assert value.updated_by == ALICE
    assert await config_service.get_value(OTHER_GUILD, "standup.time") is None


@pytest.mark.asyncio
async def test_overwrite_is_visible_through_cache(config_service):
    await config_service.set_value(GUILD, "limits.open", 3, ConfigValueType.NUMBER, ALICE)
    assert (await config_service.get_value(GUILD, "limits.open")).value == 3
    assert set(await config_service.get_server_config(GUILD)) == {"limits.open"}

    await config_service.set_value(GUILD, "limits.open", 4, ConfigValueType.NUMBER, BOB)
    assert (await config_service.get_value(GUILD, "limits.open")).value == 4
    assert (await config_service.get_server_config(GUILD))["limits.open"].value == 4


@pytest.mark.asyncio
async def test_expected_type_mismatch(config_service):
    await config_service.set_value(GUILD, "flag", True, ConfigValueType.BOOLEAN, ALICE)
    with pytest.raises(ConfigValidationError):
        await config_service.get_value(GUILD, "flag", expected_type=ConfigValueType.STRING)


@pytest.mark.asyncio
async def test_value_must_match_type(config_service):
    with pytest.raises(ConfigValidationError):
        await config_service.set_value(GUILD, "limits.open", "three", ConfigValueType.NUMBER, ALICE)


@pytest.mark.asyncio
async def test_permission_levels(config_service):
    with pytest.raises(ConfigPermissionError):
        await config_service.get_value(GUILD, "flag", level=ConfigPermissionLevel.NONE)
    with pytest.raises(ConfigPermissionError):
        await config_service.set_value(
            GUILD, "flag", True, ConfigValueType.BOOLEAN, ALICE, level=ConfigPermissionLevel.READ
        )

    await config_service.set_value(GUILD, "flag", True, ConfigValueType.BOOLEAN, ALICE)
    with pytest.raises(ConfigPermissionError):
        await config_service.delete_value(GUILD, "flag", ALICE, level=ConfigPermissionLevel.WRITE)


@pytest.mark.asyncio
async def test_delete_value(config_service):
    await config_service.set_value(GUILD, "flag", True, ConfigValueType.BOOLEAN, ALICE)
    await config_service.get_value(GUILD, "flag")

    await config_service.delete_value(GUILD, "flag", BOB)
    assert await config_service.get_value(GUILD, "flag") is None
    assert await config_service.get_server_config(GUILD) == {}

    with pytest.raises(ConfigNotFoundError):
        await config_service.delete_value(GUILD, "flag", BOB)


@pytest.mark.asyncio
async def test_audit_log_newest_first(config_service):
    await config_service.set_value(GUILD, "flag", True, ConfigValueType.BOOLEAN, ALICE)
    await config_service.set_value(GUILD, "flag", False, ConfigValueType.BOOLEAN, BOB)
    await config_service.delete_value(GUILD, "flag", BOB)

    log = await config_service.get_audit_log(GUILD, key="flag")
    assert [entry.action for entry in log] == [AuditAction.DELETE, AuditAction.UPDATE, AuditAction.CREATE]
    assert log[1].old_value is True
    assert log[1].new_value is False

    assert len(await config_service.get_audit_log(GUILD, limit=1)) == 1


@pytest.mark.asyncio
async def test_apply_update_batch(config_service):
    dto = ConfigUpdateDto.from_payload(
        {
            "guild_id": str(GUILD),
            "updated_by": str(ALICE),
            "values": [
                {"key": "standup.days", "type": "array", "value": ["mon", "thu"]},
                {"key": "standup.enabled", "type": "boolean", "value": True},
            ],
        }
    )
    written = await config_service.apply_update(dto)
    assert [v.key for v in written] == ["standup.days", "standup.enabled"]

    config = await config_service.get_server_config(GUILD)
    assert config["standup.days"].value == ["mon", "thu"]
    assert config["standup.enabled"].value is True
