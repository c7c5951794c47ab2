"""
Message templates with ``{placeholder}`` substitution.

Every :class:`NotificationType` has a built-in template. Guilds may override
a template by registering one under the same id; lookups check the guild's
overrides before the built-ins.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Tuple

from taskcord.datatypes.discord_datatypes import GuildID
from taskcord.datatypes.notification_datatypes import NotificationTemplate, NotificationType
from taskcord.errors import TemplateError
from taskcord.util.logger import get_logger
from taskcord.validation.template_validation import PLACEHOLDER_RE, find_placeholders, validate_template

logger = get_logger("template_engine")


def _template(
    template_id: str, notification_type: NotificationType, title: str, content: str
) -> NotificationTemplate:
    return NotificationTemplate(
        id=template_id,
        type=notification_type,
        title=title,
        content=content,
        variables=sorted(find_placeholders(title, content)),
    )


DEFAULT_TEMPLATES: Tuple[NotificationTemplate, ...] = (
    _template(
        "task_reminder",
        NotificationType.TASK_REMINDER,
        "⏰ Task Reminder: {title}",
        "Task #{task_id} **{title}** is still {status}.\nDeadline: {deadline}",
    ),
    _template(
        "task_due",
        NotificationType.TASK_DUE,
        "📅 Task Due Soon: {title}",
        "Task #{task_id} **{title}** is due {deadline}.",
    ),
    _template(
        "task_overdue",
        NotificationType.TASK_OVERDUE,
        "⚠️ Task Overdue: {title}",
        "Task #{task_id} **{title}** passed its deadline ({deadline}) and is now overdue.",
    ),
    _template(
        "task_assigned",
        NotificationType.TASK_ASSIGNED,
        "📋 New Task Assigned: {title}",
        "{assigner} assigned you task #{task_id} **{title}**.\n"
        "Priority: {priority}\nDeadline: {deadline}",
    ),
    _template(
        "task_completed",
        NotificationType.TASK_COMPLETED,
        "✅ Task Completed: {title}",
        "Task #{task_id} **{title}** was completed by {completer}.",
    ),
    _template(
        "system_alert",
        NotificationType.SYSTEM_ALERT,
        "🔔 {alert_title}",
        "{message}",
    ),
)

DEFAULT_TEMPLATE_IDS: Dict[NotificationType, str] = {t.type: t.id for t in DEFAULT_TEMPLATES}


class TemplateEngine:
    """Registry of templates plus the renderer that fills them in."""

    def __init__(self) -> None:
        self._templates: Dict[str, NotificationTemplate] = {t.id: t for t in DEFAULT_TEMPLATES}
        self._guild_templates: Dict[int, Dict[str, NotificationTemplate]] = {}

    def _scope(self, guild_id: Optional[GuildID]) -> Dict[str, NotificationTemplate]:
        if guild_id is None:
            return self._templates
        return self._guild_templates.setdefault(guild_id.to_int(), {})

    def register(self, template: NotificationTemplate, guild_id: Optional[GuildID] = None) -> None:
        """Add a new template. Raises :class:`TemplateError` if the id is taken in that scope."""
        validate_template(template)
        scope = self._scope(guild_id)
        if template.id in scope:
            raise TemplateError(f"Template '{template.id}' already exists")
        template.guild_id = guild_id
        scope[template.id] = template
        logger.debug("[TEMPLATES] Registered %s (guild=%s)", template.id, guild_id)

    def update(self, template: NotificationTemplate, guild_id: Optional[GuildID] = None) -> None:
        validate_template(template)
        scope = self._scope(guild_id)
        if template.id not in scope:
            raise TemplateError(f"Template '{template.id}' does not exist")
        template.guild_id = guild_id
        scope[template.id] = template

    def upsert(self, template: NotificationTemplate, guild_id: Optional[GuildID] = None) -> None:
        validate_template(template)
        template.guild_id = guild_id
        self._scope(guild_id)[template.id] = template

    def delete(self, template_id: str, guild_id: Optional[GuildID] = None) -> bool:
        """Remove a template. Built-in defaults cannot be deleted."""
        if guild_id is None and template_id in DEFAULT_TEMPLATE_IDS.values():
            raise TemplateError(f"Template '{template_id}' is built in and cannot be deleted")
        return self._scope(guild_id).pop(template_id, None) is not None

    def get(self, template_id: str, guild_id: Optional[GuildID] = None) -> NotificationTemplate | None:
        if guild_id is not None:
            override = self._guild_templates.get(guild_id.to_int(), {}).get(template_id)
            if override is not None:
                return override
        return self._templates.get(template_id)

    def has(self, template_id: str, guild_id: Optional[GuildID] = None) -> bool:
        return self.get(template_id, guild_id) is not None

    def all(self, guild_id: Optional[GuildID] = None) -> List[NotificationTemplate]:
        merged = dict(self._templates)
        if guild_id is not None:
            merged.update(self._guild_templates.get(guild_id.to_int(), {}))
        return [merged[k] for k in sorted(merged)]

    def for_type(self, notification_type: NotificationType, guild_id: Optional[GuildID] = None) -> NotificationTemplate:
        return self.get(DEFAULT_TEMPLATE_IDS[notification_type], guild_id)

    def load_guild(self, guild_id: GuildID, templates: List[NotificationTemplate]) -> None:
        """Replace the in-memory overrides of a guild with ``templates``."""
        self._guild_templates[guild_id.to_int()] = {}
        for template in templates:
            try:
                self.upsert(template, guild_id)
            except TemplateError:
                logger.warning("[TEMPLATES] Skipping invalid stored template %s for guild %s", template.id, guild_id)

    def is_guild_loaded(self, guild_id: GuildID) -> bool:
        return guild_id.to_int() in self._guild_templates

    def forget_guild(self, guild_id: GuildID) -> None:
        self._guild_templates.pop(guild_id.to_int(), None)

    @staticmethod
    def render(template: NotificationTemplate, variables: Mapping[str, object]) -> Tuple[str, str]:
        """
        Fill in ``template``. Unused variables are ignored.

        Raises:
            TemplateError: when a declared variable has no value.
        """
        missing = [name for name in template.variables if name not in variables]
        if missing:
            raise TemplateError(
                f"Missing variables for template '{template.id}': {', '.join(sorted(missing))}"
            )

        def substitute(match) -> str:
            name = match.group(1)
            return str(variables[name]) if name in variables else match.group(0)

        return (
            PLACEHOLDER_RE.sub(substitute, template.title),
            PLACEHOLDER_RE.sub(substitute, template.content),
        )

    def apply(
        self, template_id: str, variables: Mapping[str, object], guild_id: Optional[GuildID] = None
    ) -> Tuple[str, str]:
        """Render a template by id and return ``(title, content)``."""
        template = self.get(template_id, guild_id)
        if template is None:
            raise TemplateError(f"Template '{template_id}' not found")
        return self.render(template, variables)


template_engine = TemplateEngine()
