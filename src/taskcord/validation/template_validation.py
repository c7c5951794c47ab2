"""Validation of notification templates."""
from __future__ import annotations

import re
from typing import Any, Dict, List, Set

from jsonschema import Draft7Validator

from taskcord.datatypes.notification_datatypes import NotificationTemplate, NotificationType
from taskcord.errors import TemplateError

PLACEHOLDER_RE = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")

template_schema = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "pattern": "^[a-z0-9_.-]{1,64}$"},
        "type": {"type": "string", "enum": [t.value for t in NotificationType]},
        "title": {"type": "string", "minLength": 1, "maxLength": 256},
        "content": {"type": "string", "minLength": 1, "maxLength": 4000},
        "variables": {"type": "array", "items": {"type": "string"}, "uniqueItems": True},
    },
    "required": ["id", "type", "title", "content", "variables"],
    "additionalProperties": False,
}

_template_validator = Draft7Validator(template_schema)


def find_placeholders(*texts: str) -> Set[str]:
    found: Set[str] = set()
    for text in texts:
        found.update(PLACEHOLDER_RE.findall(text))
    return found


def validate_template(template: NotificationTemplate) -> None:
    """
    Raise :class:`TemplateError` unless the template is well formed and its
    declared ``variables`` are exactly the placeholders it uses.
    """
    payload: Dict[str, Any] = template.to_dict()
    errors = sorted(_template_validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        messages: List[str] = [
            f"{'.'.join(str(p) for p in e.path) or 'template'}: {e.message}" for e in errors
        ]
        raise TemplateError(f"Invalid template '{template.id}': " + "; ".join(messages))

    used = find_placeholders(template.title, template.content)
    declared = set(template.variables)
    if used - declared:
        raise TemplateError(
            f"Template '{template.id}' uses undeclared variables: {', '.join(sorted(used - declared))}"
        )
    if declared - used:
        raise TemplateError(
            f"Template '{template.id}' declares unused variables: {', '.join(sorted(declared - used))}"
        )
