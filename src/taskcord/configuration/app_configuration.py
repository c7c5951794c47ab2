from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from taskcord.datatypes.notification_datatypes import RateLimitConfig
from taskcord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_DATABASE_PATH = "data/taskcord.db"
DEFAULT_TIMEZONE = "Europe/Amsterdam"


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed shortcuts for every section the bot reads. Every shortcut falls back
    to a sane default, so a missing file still yields a runnable bot.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                if not isinstance(data, dict):
                    return {}
                return data
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Location of the SQLite database file."""
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value)).resolve()

    @property
    def cache_enabled(self) -> bool:
        return bool(self._section("cache").get("enabled", True))

    @property
    def cache_ttl_seconds(self) -> int:
        """Time-to-live of cached settings and config values. Default 1 hour."""
        return int(self._section("cache").get("ttl_seconds", 3600))

    @property
    def reminder_poll_interval(self) -> float:
        """How often due reminders are polled, in seconds. Default 60."""
        return float(self._section("reminders").get("poll_interval_seconds", 60.0))

    @property
    def overdue_check_interval(self) -> float:
        """How often every guild is scanned for overdue tasks. Default 300."""
        return float(self._section("tasks").get("overdue_check_interval_seconds", 300.0))

    @property
    def notification_rate_limit(self) -> RateLimitConfig:
        """Per-guild delivery limit. Defaults follow Discord's 50 requests per second."""
        section = self._section("notifications")
        return RateLimitConfig(
            requests_per_window=int(section.get("requests_per_window", 50)),
            window_seconds=float(section.get("window_seconds", 1.0)),
        )

    @property
    def notification_max_retries(self) -> int:
        return int(self._section("notifications").get("max_retries", 3))

    @property
    def notification_max_queue_size(self) -> int:
        """Most notifications waiting per guild; the oldest is dropped beyond this."""
        return int(self._section("notifications").get("max_queue_size", 500))

    @property
    def retry_drain_interval(self) -> float:
        return float(self._section("notifications").get("retry_drain_interval_seconds", 10.0))

    @property
    def default_timezone(self) -> str:
        value = self._data.get("default_timezone") or DEFAULT_TIMEZONE
        return str(value)


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
