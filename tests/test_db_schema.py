import aiosqlite
import pytest

from taskcord.database.db_schema import SCHEMA_VERSION, SchemaManager


async def _columns(conn, table):
    async with conn.execute(f"PRAGMA table_info({table})") as cursor:
        return {row[1] for row in await cursor.fetchall()}


@pytest.mark.asyncio
async def test_initialize_schema_is_idempotent(tmp_path):
    async with aiosqlite.connect(tmp_path / "fresh.db") as conn:
        await SchemaManager.initialize_schema(conn)
        await SchemaManager.initialize_schema(conn)

        assert "interval_minutes" in await _columns(conn, "reminder_schedules")
        async with conn.execute("SELECT MAX(version) FROM schema_version") as cursor:
            assert (await cursor.fetchone())[0] == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_old_reminder_table_gains_interval_column(tmp_path):
    async with aiosqlite.connect(tmp_path / "old.db") as conn:
        await conn.execute("""
            CREATE TABLE reminder_schedules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL UNIQUE,
                guild_id INTEGER NOT NULL,
                frequency TEXT NOT NULL,
                next_reminder TEXT NOT NULL,
                last_sent TEXT
            )
        """)
        await conn.execute(
            "INSERT INTO reminder_schedules (task_id, guild_id, frequency, next_reminder) "
            "VALUES (1, 1, 'DAILY', '2030-01-01T12:00:00+00:00')"
        )
        await conn.commit()

        await SchemaManager.initialize_schema(conn)

        assert "interval_minutes" in await _columns(conn, "reminder_schedules")
        async with conn.execute("SELECT frequency, interval_minutes FROM reminder_schedules") as cursor:
            assert await cursor.fetchone() == ("DAILY", None)
