"""
Database schema initialization.

Creates tables, indexes and triggers, and records the schema version.
Timestamps are stored as UTC ISO-8601 text (see ``db_types``) so they
compare correctly as strings.
"""

import aiosqlite
from taskcord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 2

# Format written by the updated_at triggers; matches db_types.to_db_timestamp
_NOW = "strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')"


class SchemaManager:
    """Creates and upgrades the database schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables, indexes and triggers if they do not exist.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._migrate(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # Server settings
        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS server_settings (
                guild_id INTEGER PRIMARY KEY,
                default_reminder_frequency INTEGER NOT NULL DEFAULT 1440,
                default_task_priority TEXT NOT NULL DEFAULT 'MEDIUM',
                timezone TEXT NOT NULL DEFAULT 'Europe/Amsterdam',
                notification_channel_id INTEGER,
                max_tasks_per_user INTEGER NOT NULL DEFAULT 5,
                enabled_features TEXT NOT NULL DEFAULT '{{}}',
                created_at TEXT NOT NULL DEFAULT ({_NOW}),
                updated_at TEXT NOT NULL DEFAULT ({_NOW})
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS server_role_assignments (
                guild_id INTEGER NOT NULL,
                role_id INTEGER NOT NULL,
                kind TEXT NOT NULL CHECK (kind IN ('admin', 'manager')),
                PRIMARY KEY (guild_id, role_id, kind),
                FOREIGN KEY (guild_id) REFERENCES server_settings(guild_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS server_categories (
                guild_id INTEGER NOT NULL,
                name TEXT NOT NULL COLLATE NOCASE,
                position INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (guild_id, name),
                FOREIGN KEY (guild_id) REFERENCES server_settings(guild_id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS command_permissions (
                guild_id INTEGER NOT NULL,
                command TEXT NOT NULL,
                role_id INTEGER NOT NULL,
                access TEXT NOT NULL CHECK (access IN ('allow', 'deny')),
                PRIMARY KEY (guild_id, command, role_id),
                FOREIGN KEY (guild_id) REFERENCES server_settings(guild_id) ON DELETE CASCADE
            )
        """)

        # Generic config values and their audit trail
        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS config_values (
                guild_id INTEGER NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                type TEXT NOT NULL,
                updated_by INTEGER,
                updated_at TEXT NOT NULL DEFAULT ({_NOW}),
                PRIMARY KEY (guild_id, key)
            )
        """)

        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS config_audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                key TEXT NOT NULL,
                action TEXT NOT NULL CHECK (action IN ('create', 'update', 'delete')),
                old_value TEXT,
                new_value TEXT,
                changed_by INTEGER,
                created_at TEXT NOT NULL DEFAULT ({_NOW})
            )
        """)

        # Tasks
        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS tasks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id INTEGER NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                assignee_id INTEGER,
                created_by INTEGER NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                priority TEXT NOT NULL DEFAULT 'MEDIUM',
                category TEXT,
                deadline TEXT,
                completed_at TEXT,
                reminder_frequency INTEGER,
                created_at TEXT NOT NULL DEFAULT ({_NOW}),
                updated_at TEXT NOT NULL DEFAULT ({_NOW})
            )
        """)

        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS task_status_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL,
                guild_id INTEGER NOT NULL,
                from_status TEXT,
                to_status TEXT NOT NULL,
                changed_by INTEGER,
                changed_at TEXT NOT NULL DEFAULT ({_NOW}),
                FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS reminder_schedules (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id INTEGER NOT NULL UNIQUE,
                guild_id INTEGER NOT NULL,
                frequency TEXT NOT NULL,
                next_reminder TEXT NOT NULL,
                last_sent TEXT,
                interval_minutes INTEGER,
                FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE
            )
        """)

        # Notifications
        await db.execute("""
            CREATE TABLE IF NOT EXISTS notification_preferences (
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                type TEXT NOT NULL,
                enabled INTEGER NOT NULL DEFAULT 1,
                mention_user INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (guild_id, user_id, type)
            )
        """)

        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS notification_templates (
                guild_id INTEGER NOT NULL,
                id TEXT NOT NULL,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                variables TEXT NOT NULL DEFAULT '[]',
                updated_at TEXT NOT NULL DEFAULT ({_NOW}),
                PRIMARY KEY (guild_id, id)
            )
        """)

        # Permission roles
        await db.execute("""
            CREATE TABLE IF NOT EXISTS permission_roles (
                guild_id INTEGER NOT NULL,
                role_id INTEGER NOT NULL,
                inherits_from INTEGER,
                PRIMARY KEY (guild_id, role_id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS permission_role_grants (
                guild_id INTEGER NOT NULL,
                role_id INTEGER NOT NULL,
                permission TEXT NOT NULL,
                PRIMARY KEY (guild_id, role_id, permission),
                FOREIGN KEY (guild_id, role_id)
                    REFERENCES permission_roles(guild_id, role_id) ON DELETE CASCADE
            )
        """)

        await db.execute(f"""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT ({_NOW})
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_tasks_guild_status ON tasks(guild_id, status)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_tasks_guild_deadline ON tasks(guild_id, deadline)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_tasks_guild_assignee ON tasks(guild_id, assignee_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_task_history_task ON task_status_history(task_id, changed_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_guild_created ON config_audit_log(guild_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_guild_key ON config_audit_log(guild_id, key)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_reminders_next ON reminder_schedules(next_reminder)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_role_assignments_guild ON server_role_assignments(guild_id)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        """Keep ``updated_at`` current when a statement does not set it."""
        for table, key_clause in (
            ("server_settings", "guild_id = NEW.guild_id"),
            ("config_values", "guild_id = NEW.guild_id AND key = NEW.key"),
            ("tasks", "id = NEW.id"),
        ):
            await db.execute(f"""
                CREATE TRIGGER IF NOT EXISTS update_{table}_timestamp
                AFTER UPDATE ON {table}
                FOR EACH ROW WHEN NEW.updated_at = OLD.updated_at
                BEGIN
                    UPDATE {table} SET updated_at = {_NOW}
                    WHERE {key_clause};
                END
            """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )

    @staticmethod
    async def _migrate(db: aiosqlite.Connection) -> None:
        """Bring tables created by an older schema version up to date."""
        async with db.execute("PRAGMA table_info(reminder_schedules)") as cursor:
            columns = {row[1] for row in await cursor.fetchall()}
        if "interval_minutes" not in columns:
            await db.execute("ALTER TABLE reminder_schedules ADD COLUMN interval_minutes INTEGER")
            logger.info("[SCHEMA] Added reminder_schedules.interval_minutes")
