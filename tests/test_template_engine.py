import pytest

from taskcord.datatypes.notification_datatypes import NotificationTemplate, NotificationType
from taskcord.errors import TemplateError
from taskcord.notification.template_engine import DEFAULT_TEMPLATE_IDS, TemplateEngine
from taskcord.validation.template_validation import find_placeholders, validate_template

from conftest import GUILD, OTHER_GUILD


def _custom(template_id="weekly_digest", title="Digest for {recipient}", content="{message}"):
    return NotificationTemplate(
        id=template_id,
        type=NotificationType.SYSTEM_ALERT,
        title=title,
        content=content,
        variables=sorted(find_placeholders(title, content)),
    )


def test_every_type_has_a_builtin(engine):
    for notification_type in NotificationType:
        assert engine.for_type(notification_type).type is notification_type
    assert set(DEFAULT_TEMPLATE_IDS) == set(NotificationType)


def test_render_fills_placeholders(engine):
    title, content = engine.apply(
        "task_completed", {"title": "Mow", "task_id": 4, "completer": "<@1>", "unused": "x"}
    )
    assert title == "✅ Task Completed: Mow"
    assert content == "Task #4 **Mow** was completed by <@1>."


def test_render_requires_declared_variables(engine):
    with pytest.raises(TemplateError, match="Missing variables"):
        engine.apply("task_completed", {"title": "Mow"})


def test_apply_unknown_template(engine):
    with pytest.raises(TemplateError, match="not found"):
        engine.apply("nope", {})


def test_register_update_delete(engine):
    template = _custom()
    engine.register(template)
    assert engine.has("weekly_digest")
    with pytest.raises(TemplateError, match="already exists"):
        engine.register(_custom())

    engine.update(_custom(title="Digest"))
    assert engine.get("weekly_digest").title == "Digest"
    with pytest.raises(TemplateError, match="does not exist"):
        engine.update(_custom(template_id="other"))

    assert engine.delete("weekly_digest") is True
    assert engine.delete("weekly_digest") is False


def test_builtins_cannot_be_deleted(engine):
    with pytest.raises(TemplateError):
        engine.delete("task_reminder")


def test_guild_overrides_are_isolated(engine):
    override = NotificationTemplate(
        id="task_due", type=NotificationType.TASK_DUE, title="Due: {title}", content="Hurry!", variables=["title"]
    )
    engine.upsert(override, GUILD)

    assert engine.for_type(NotificationType.TASK_DUE, GUILD).title == "Due: {title}"
    assert engine.for_type(NotificationType.TASK_DUE, OTHER_GUILD).title == "📅 Task Due Soon: {title}"
    assert engine.for_type(NotificationType.TASK_DUE).title == "📅 Task Due Soon: {title}"
    assert engine.is_guild_loaded(GUILD)

    engine.forget_guild(GUILD)
    assert not engine.is_guild_loaded(GUILD)
    assert engine.for_type(NotificationType.TASK_DUE, GUILD).title == "📅 Task Due Soon: {title}"


def test_load_guild_skips_invalid_templates(engine):
    broken = NotificationTemplate(
        id="task_due", type=NotificationType.TASK_DUE, title="{title}", content="x", variables=[]
    )
    engine.load_guild(GUILD, [broken])
    assert engine.is_guild_loaded(GUILD)
    assert engine.for_type(NotificationType.TASK_DUE, GUILD).title == "📅 Task Due Soon: {title}"


@pytest.mark.parametrize(
    "title, content, variables, message",
    [
        ("{title}", "body", [], "undeclared"),
        ("plain", "body", ["title"], "declares unused"),
        ("", "body", [], "title"),
    ],
)
def test_validate_template(title, content, variables, message):
    template = NotificationTemplate(
        id="custom", type=NotificationType.SYSTEM_ALERT, title=title, content=content, variables=variables
    )
    with pytest.raises(TemplateError, match=message):
        validate_template(template)


def test_fresh_engines_do_not_share_state():
    first = TemplateEngine()
    first.register(_custom())
    assert not TemplateEngine().has("weekly_digest")
