"""
Pytest configuration and fixtures for Taskcord tests.

Every test that touches the database gets its own SQLite file under
``tmp_path`` and freshly wired services, so module-level singletons are
never shared between tests.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from taskcord.database.db_cache import KeyValueCache  # noqa: E402
from taskcord.database.db_connection import ConnectionManager  # noqa: E402
from taskcord.database.db_schema import SchemaManager  # noqa: E402
from taskcord.datatypes.discord_datatypes import GuildID, UserID  # noqa: E402
from taskcord.datatypes.notification_datatypes import RateLimitConfig  # noqa: E402
from taskcord.notification.dispatcher import NotificationDispatcher  # noqa: E402
from taskcord.notification.notification_service import NotificationService  # noqa: E402
from taskcord.notification.reminder_service import ReminderService  # noqa: E402
from taskcord.notification.template_engine import TemplateEngine  # noqa: E402
from taskcord.services.config_service import ConfigService  # noqa: E402
from taskcord.services.permission_service import PermissionService  # noqa: E402
from taskcord.services.server_settings_service import ServerSettingsService  # noqa: E402
from taskcord.services.task_service import TaskService  # noqa: E402

GUILD = GuildID(123456789012345678)
OTHER_GUILD = GuildID(876543210987654321)
ALICE = UserID(111111111111111111)
BOB = UserID(222222222222222222)


class FakeClock:
    """Manually advanced stand-in for ``time.monotonic``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_member(user_id=ALICE, role_ids=(), administrator=False, manage_guild=False, manage_messages=False):
    """A ``discord.Member`` look-alike that passes isinstance checks."""
    import discord

    member = MagicMock(spec=discord.Member)
    member.id = int(user_id)
    member.mention = f"<@{int(user_id)}>"
    member.display_name = f"user{int(user_id)}"
    member.roles = [SimpleNamespace(id=rid) for rid in role_ids]
    member.guild_permissions = SimpleNamespace(
        administrator=administrator, manage_guild=manage_guild, manage_messages=manage_messages
    )
    return member


def make_ctx(user=None, guild_id=GUILD):
    user = user or make_member()
    return SimpleNamespace(
        guild_id=int(guild_id) if guild_id is not None else None,
        user=user,
        author=user,
        respond=AsyncMock(),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def db(tmp_path):
    manager = ConnectionManager()
    await manager.open(tmp_path / "taskcord.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()


@pytest.fixture
def cache():
    return KeyValueCache(ttl_seconds=60)


@pytest.fixture
def fake_bot():
    channel = SimpleNamespace(send=AsyncMock())
    user = SimpleNamespace(send=AsyncMock())
    return SimpleNamespace(
        channel=channel,
        user=user,
        get_channel=MagicMock(return_value=channel),
        fetch_channel=AsyncMock(return_value=channel),
        get_user=MagicMock(return_value=user),
        fetch_user=AsyncMock(return_value=user),
    )


@pytest.fixture
def settings_service(db, cache):
    return ServerSettingsService(db=db, cache=cache, cache_enabled=True)


@pytest.fixture
def config_service(db, cache):
    return ConfigService(db=db, cache=cache, cache_enabled=True)


@pytest.fixture
def permission_service(db, cache, settings_service):
    return PermissionService(db=db, cache=cache, settings_service=settings_service, cache_enabled=True)


@pytest.fixture
def engine():
    return TemplateEngine()


@pytest.fixture
def dispatcher(fake_bot, clock):
    dispatcher = NotificationDispatcher(
        rate_limit=RateLimitConfig(requests_per_window=50, window_seconds=1.0), max_retries=3, clock=clock
    )
    dispatcher.set_bot(fake_bot)
    return dispatcher


@pytest.fixture
def notification_service(db, settings_service, engine, dispatcher):
    return NotificationService(db=db, settings_service=settings_service, engine=engine, dispatcher=dispatcher)


@pytest.fixture
def reminder_service(db, notification_service, settings_service):
    return ReminderService(db=db, notifications=notification_service, settings_service=settings_service)


@pytest.fixture
def task_service(db, settings_service, notification_service, reminder_service):
    return TaskService(
        db=db, settings_service=settings_service, notifications=notification_service, reminders=reminder_service
    )
