"""Validation of task payloads.

A payload is a plain dict with any of the keys ``title``, ``description``,
``assignee_id``, ``status``, ``priority``, ``category``, ``deadline``
(timezone-aware datetime) and ``reminder_frequency`` (minutes). Shape checks
run through a jsonschema validator; checks that need context (the current
time, the server's categories) run in Python afterwards.

Public exports
- MAX_TITLE_LENGTH, MAX_DESCRIPTION_LENGTH, MIN_REMINDER_FREQUENCY
- collect_task_errors(payload, ...) -> list[str]
- validate_task(payload, ...) -> dict   (raises TaskValidationError)
- validate_tasks(payloads, ...) -> dict[int, list[str]]
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from jsonschema import Draft7Validator

from taskcord.datatypes.server_settings import ServerSettings
from taskcord.datatypes.task_datatypes import TaskPriority, TaskStatus, utcnow
from taskcord.errors import TaskValidationError

MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000
MIN_REMINDER_FREQUENCY = 5

task_schema = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "minLength": 1, "maxLength": MAX_TITLE_LENGTH},
        "description": {"type": "string", "maxLength": MAX_DESCRIPTION_LENGTH},
        "assignee_id": {"type": "string", "pattern": "^[0-9]+$"},
        "status": {"type": "string", "enum": [s.value for s in TaskStatus]},
        "priority": {"type": "string", "enum": [p.value for p in TaskPriority]},
        "category": {"type": "string", "minLength": 1},
        "reminder_frequency": {"type": "integer", "minimum": MIN_REMINDER_FREQUENCY},
    },
}

_create_validator = Draft7Validator({**task_schema, "required": ["title", "assignee_id"]})
_partial_validator = Draft7Validator(task_schema)

_MESSAGES = {
    ("title", "minLength"): "Title is required",
    ("title", "required"): "Title is required",
    ("title", "maxLength"): f"Title must be {MAX_TITLE_LENGTH} characters or fewer",
    ("description", "maxLength"): f"Description must be {MAX_DESCRIPTION_LENGTH} characters or fewer",
    ("assignee_id", "required"): "Assignee is required",
    ("reminder_frequency", "minimum"): f"Reminder frequency must be at least {MIN_REMINDER_FREQUENCY} minutes",
}


def _to_instance(payload: Dict[str, Any]) -> Dict[str, Any]:
    """JSON view of the payload; ``None`` values count as absent."""
    instance: Dict[str, Any] = {}
    for key, value in payload.items():
        if value is None or key == "deadline":
            continue
        if isinstance(value, Enum):
            value = value.value
        elif key == "assignee_id":
            value = str(value)
        elif key == "title" and isinstance(value, str):
            value = value.strip()
        instance[key] = value
    return instance


def _describe(error) -> str:
    if error.validator == "required":
        field = error.message.split("'")[1]
    else:
        field = error.path[0] if error.path else ""
    message = _MESSAGES.get((field, error.validator))
    if message:
        return message
    if error.validator == "enum":
        return f"Invalid {field}: {error.instance}"
    return f"{field}: {error.message}" if field else error.message


def collect_task_errors(
    payload: Dict[str, Any],
    *,
    partial: bool = False,
    settings: Optional[ServerSettings] = None,
    now: Optional[datetime] = None,
) -> List[str]:
    """Every problem with ``payload`` as a human-readable message; empty when valid.

    ``partial`` validates an update: only the keys present are checked.
    """
    validator = _partial_validator if partial else _create_validator
    errors = [
        _describe(e)
        for e in sorted(validator.iter_errors(_to_instance(payload)), key=lambda e: list(e.path))
    ]

    deadline = payload.get("deadline")
    if deadline is not None:
        if not isinstance(deadline, datetime) or deadline.tzinfo is None:
            errors.append("Deadline must be a timezone-aware datetime")
        elif deadline < (now or utcnow()):
            errors.append("Deadline cannot be in the past")

    category = payload.get("category")
    if (
        category
        and settings is not None
        and settings.is_feature_enabled("category_management")
        and not settings.is_category_valid(category)
    ):
        errors.append(
            f"Unknown category '{category}'. Available: {', '.join(settings.custom_categories)}"
        )
    return errors


def validate_task(
    payload: Dict[str, Any],
    *,
    partial: bool = False,
    settings: Optional[ServerSettings] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate and return the payload with its title stripped.

    Raises:
        TaskValidationError: listing every problem found.
    """
    errors = collect_task_errors(payload, partial=partial, settings=settings, now=now)
    if errors:
        raise TaskValidationError("; ".join(errors))
    cleaned = dict(payload)
    if isinstance(cleaned.get("title"), str):
        cleaned["title"] = cleaned["title"].strip()
    return cleaned


def validate_tasks(
    payloads: Iterable[Dict[str, Any]],
    *,
    settings: Optional[ServerSettings] = None,
    now: Optional[datetime] = None,
) -> Dict[int, List[str]]:
    """Bulk validation. Returns ``{index: errors}`` for the invalid payloads only."""
    now = now or utcnow()
    result: Dict[int, List[str]] = {}
    for index, payload in enumerate(payloads):
        errors = collect_task_errors(payload, settings=settings, now=now)
        if errors:
            result[index] = errors
    return result
