"""
NotificationService: turns task events into delivered notifications.

It checks the recipient's preference, picks the guild's template for the
notification type, renders it with the task's details and hands the result
to the dispatcher. Delivery problems are the dispatcher's business; callers
only learn whether a notification was produced.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from taskcord.database.db_connection import ConnectionManager, db_connection
from taskcord.datatypes.discord_datatypes import GuildID, UserID
from taskcord.datatypes.notification_datatypes import (
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationTemplate,
    NotificationType,
)
from taskcord.datatypes.task_datatypes import Task
from taskcord.errors import TemplateError
from taskcord.notification.dispatcher import NotificationDispatcher, notification_dispatcher
from taskcord.notification.template_engine import (
    DEFAULT_TEMPLATE_IDS,
    TemplateEngine,
    template_engine,
)
from taskcord.repositories import NotificationPreferencesRepository, NotificationTemplatesRepository
from taskcord.services.server_settings_service import ServerSettingsService, server_settings_service
from taskcord.util.format_utils import format_deadline
from taskcord.util.logger import get_logger
from taskcord.validation.template_validation import find_placeholders, validate_template

logger = get_logger("notification_service")


class NotificationService:
    def __init__(
        self,
        db: ConnectionManager = db_connection,
        settings_service: ServerSettingsService = server_settings_service,
        engine: TemplateEngine = template_engine,
        dispatcher: NotificationDispatcher = notification_dispatcher,
    ) -> None:
        self._db = db
        self._settings = settings_service
        self.engine = engine
        self.dispatcher = dispatcher
        self._prefs_repo = NotificationPreferencesRepository()
        self._templates_repo = NotificationTemplatesRepository()

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preference(
        self, guild_id: GuildID, user_id: UserID, notification_type: NotificationType
    ) -> NotificationPreference:
        """Stored preference, or the default (enabled, mention on)."""
        async with self._db.read() as conn:
            pref = await self._prefs_repo.get(conn, guild_id, user_id, notification_type)
        return pref or NotificationPreference(guild_id=guild_id, user_id=user_id, type=notification_type)

    async def get_preferences(self, guild_id: GuildID, user_id: UserID) -> List[NotificationPreference]:
        async with self._db.read() as conn:
            return await self._prefs_repo.list_for_user(conn, guild_id, user_id)

    async def set_preference(
        self,
        guild_id: GuildID,
        user_id: UserID,
        notification_type: NotificationType,
        enabled: Optional[bool] = None,
        mention_user: Optional[bool] = None,
    ) -> NotificationPreference:
        async with self._db.transaction() as conn:
            pref = await self._prefs_repo.get(conn, guild_id, user_id, notification_type)
            pref = pref or NotificationPreference(guild_id=guild_id, user_id=user_id, type=notification_type)
            if enabled is not None:
                pref.enabled = enabled
            if mention_user is not None:
                pref.mention_user = mention_user
            await self._prefs_repo.upsert(conn, pref)
        return pref

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def _ensure_guild_templates(self, guild_id: GuildID) -> None:
        if self.engine.is_guild_loaded(guild_id):
            return
        async with self._db.read() as conn:
            templates = await self._templates_repo.list_for_guild(conn, guild_id)
        self.engine.load_guild(guild_id, templates)

    async def get_template(self, guild_id: GuildID, notification_type: NotificationType) -> NotificationTemplate:
        await self._ensure_guild_templates(guild_id)
        return self.engine.for_type(notification_type, guild_id)

    async def set_guild_template(
        self, guild_id: GuildID, notification_type: NotificationType, title: str, content: str
    ) -> NotificationTemplate:
        """
        Override the built-in template for one notification type.

        Variables are taken from the placeholders used; they must be ones
        the built-in template offers.
        """
        default = self.engine.get(DEFAULT_TEMPLATE_IDS[notification_type])
        used = find_placeholders(title, content)
        unknown = used - set(TEMPLATE_VARIABLES)
        if unknown:
            raise TemplateError(
                f"Unknown variables: {', '.join(sorted(unknown))}. "
                f"Available: {', '.join(sorted(TEMPLATE_VARIABLES))}"
            )
        template = NotificationTemplate(
            id=default.id, type=notification_type, title=title, content=content, variables=sorted(used)
        )
        validate_template(template)
        await self._ensure_guild_templates(guild_id)
        async with self._db.transaction() as conn:
            await self._templates_repo.upsert(conn, guild_id, template)
        self.engine.upsert(template, guild_id)
        logger.info("[NOTIFICATION SERVICE] Guild %s overrode template %s", guild_id, template.id)
        return template

    async def reset_guild_template(self, guild_id: GuildID, notification_type: NotificationType) -> bool:
        template_id = DEFAULT_TEMPLATE_IDS[notification_type]
        await self._ensure_guild_templates(guild_id)
        async with self._db.transaction() as conn:
            removed = await self._templates_repo.delete(conn, guild_id, template_id)
        self.engine.delete(template_id, guild_id)
        return removed

    # ------------------------------------------------------------------
    # Notify
    # ------------------------------------------------------------------

    async def notify(
        self,
        guild_id: GuildID,
        notification_type: NotificationType,
        recipient_id: UserID,
        task: Optional[Task] = None,
        extra: Optional[Dict[str, Any]] = None,
        priority: Optional[NotificationPriority] = None,
    ) -> Notification | None:
        """
        Build and dispatch one notification.

        Returns None when the recipient has turned this type off.
        """
        pref = await self.get_preference(guild_id, recipient_id, notification_type)
        if not pref.enabled:
            logger.debug(
                "[NOTIFICATION SERVICE] %s disabled %s, skipping", recipient_id, notification_type.value
            )
            return None

        settings = await self._settings.get(guild_id)
        template = await self.get_template(guild_id, notification_type)
        variables = build_variables(task, settings.timezone, recipient_id, extra)
        title, content = self.engine.render(template, variables)

        if priority is None:
            priority = NotificationPriority(task.priority.value) if task else NotificationPriority.MEDIUM

        notification = Notification(
            guild_id=guild_id,
            recipient_id=recipient_id,
            type=notification_type,
            title=title,
            content=content,
            priority=priority,
            channel_id=settings.notification_channel_id,
            mention_user=pref.mention_user,
            task_id=task.id if task else None,
        )
        await self.dispatcher.send(notification)
        return notification


TEMPLATE_VARIABLES = (
    "task_id", "title", "description", "status", "priority", "category",
    "deadline", "assignee", "creator", "recipient", "assigner", "completer",
    "alert_title", "message",
)


def build_variables(
    task: Optional[Task], tz_name: str, recipient_id: UserID, extra: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Every template variable, filled from the task where there is one."""
    variables: Dict[str, Any] = {name: "" for name in TEMPLATE_VARIABLES}
    variables["recipient"] = recipient_id.mention()
    if task is not None:
        assignee = task.assignee_id.mention() if task.assignee_id else "nobody"
        variables.update(
            task_id=task.id,
            title=task.title,
            description=task.description,
            status=task.status.value.replace("_", " ").lower(),
            priority=task.priority.value.title(),
            category=task.category or "none",
            deadline=format_deadline(task.deadline, tz_name),
            assignee=assignee,
            creator=task.created_by.mention(),
            assigner=task.created_by.mention(),
            completer=assignee,
        )
    variables.update(extra or {})
    return variables


notification_service = NotificationService()
