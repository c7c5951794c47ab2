from taskcord.datatypes.discord_datatypes import ChannelID, GuildID
from taskcord.datatypes.server_settings import (
    DEFAULT_CATEGORIES,
    CommandPermission,
    ServerSettings,
)
from taskcord.datatypes.task_datatypes import TaskPriority


def test_defaults():
    settings = ServerSettings(guild_id=GuildID(1))
    assert settings.default_reminder_frequency == 1440
    assert settings.default_task_priority is TaskPriority.MEDIUM
    assert settings.max_tasks_per_user == 5
    assert settings.custom_categories == list(DEFAULT_CATEGORIES)
    assert settings.is_feature_enabled("automatic_reminders")
    assert not settings.is_feature_enabled("task_templates")
    assert not settings.is_feature_enabled("no_such_feature")


def test_admin_roles_count_as_manager_roles():
    settings = ServerSettings(guild_id=GuildID(1), admin_role_ids={10}, manager_role_ids={20})
    assert settings.has_admin_role(10)
    assert settings.has_manager_role(10)
    assert settings.has_manager_role(20)
    assert not settings.has_admin_role(20)


def test_categories_are_case_insensitive():
    settings = ServerSettings(guild_id=GuildID(1))
    assert settings.is_category_valid("general")
    assert not settings.add_category("GENERAL")
    assert settings.add_category("Garden")
    assert settings.remove_category("garden")
    assert not settings.remove_category("garden")


def test_dict_round_trip_keeps_everything():
    settings = ServerSettings(
        guild_id=GuildID(1),
        default_task_priority=TaskPriority.HIGH,
        notification_channel_id=ChannelID(99),
        admin_role_ids={3},
        command_permissions={"task delete": CommandPermission(allowed_roles={4}, denied_roles={5})},
    )
    settings.enabled_features.statistics = False

    restored = ServerSettings.from_dict(settings.to_dict())

    assert restored == settings
    assert restored.notification_channel_id == 99
    assert restored.command_permissions["task delete"].denied_roles == {5}
    assert not restored.is_feature_enabled("statistics")
