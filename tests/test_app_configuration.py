from pathlib import Path

from taskcord.configuration.app_configuration import DEFAULT_TIMEZONE, AppConfig


def test_reads_sections(tmp_path):
    path = tmp_path / "app_config.yml"
    path.write_text(
        "cache:\n"
        "  enabled: false\n"
        "  ttl_seconds: 30\n"
        "default_timezone: UTC\n"
        "reminders:\n"
        "  poll_interval_seconds: 15\n"
        "notifications:\n"
        "  requests_per_window: 5\n"
        "  window_seconds: 2\n"
        "  max_retries: 1\n"
        "  max_queue_size: 20\n",
        encoding="utf-8",
    )
    config = AppConfig(path)

    assert config.cache_enabled is False
    assert config.cache_ttl_seconds == 30
    assert config.default_timezone == "UTC"
    assert config.reminder_poll_interval == 15.0
    assert config.notification_rate_limit.requests_per_window == 5
    assert config.notification_rate_limit.window_seconds == 2.0
    assert config.notification_max_retries == 1
    assert config.notification_max_queue_size == 20


def test_missing_file_uses_defaults(tmp_path):
    config = AppConfig(tmp_path / "missing.yml")

    assert config.data == {}
    assert config.cache_enabled is True
    assert config.default_timezone == DEFAULT_TIMEZONE
    assert config.overdue_check_interval == 300.0
    assert config.retry_drain_interval == 10.0
    assert config.notification_max_queue_size == 500
    assert config.database_path == Path("data/taskcord.db").resolve()


def test_reload_picks_up_changes(tmp_path):
    path = tmp_path / "app_config.yml"
    path.write_text("default_timezone: UTC\n", encoding="utf-8")
    config = AppConfig(path)
    path.write_text("default_timezone: Asia/Tokyo\n", encoding="utf-8")

    assert config.default_timezone == "UTC"
    config.reload()
    assert config.get("default_timezone") == "Asia/Tokyo"


def test_non_mapping_yaml_is_ignored(tmp_path):
    path = tmp_path / "app_config.yml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    assert AppConfig(path).data == {}
