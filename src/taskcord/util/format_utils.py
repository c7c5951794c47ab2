from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from taskcord.errors import TaskValidationError
from taskcord.util.logger import get_logger

logger = get_logger("format_utils")

DEADLINE_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d")


def get_zone(name: str) -> ZoneInfo:
    """Return the named zone, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone '%s', using UTC", name)
        return ZoneInfo("UTC")


def parse_deadline(text: str, tz_name: str) -> datetime:
    """Parse a user-supplied deadline in the server's timezone.

    Accepts ``YYYY-MM-DD HH:MM`` or ``YYYY-MM-DD``; a bare date means the end
    of that day (23:59). The result is timezone-aware and converted to UTC.

    Raises:
        TaskValidationError: if the text matches none of the formats.
    """
    cleaned = " ".join(text.strip().split())
    for fmt in DEADLINE_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
        if fmt == "%Y-%m-%d":
            parsed = parsed.replace(hour=23, minute=59)
        return parsed.replace(tzinfo=get_zone(tz_name)).astimezone(timezone.utc)
    raise TaskValidationError(
        f"Could not read deadline '{text}'. Use YYYY-MM-DD or YYYY-MM-DD HH:MM"
    )


def format_deadline(value: Optional[datetime], tz_name: str) -> str:
    """Render a deadline in the server's timezone, e.g. ``2026-03-01 18:00 CET``."""
    if value is None:
        return "No deadline"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    local = value.astimezone(get_zone(tz_name))
    return local.strftime("%Y-%m-%d %H:%M %Z")


def discord_timestamp(value: datetime, style: str = "R") -> str:
    """Discord's ``<t:unix:style>`` markup; ``R`` renders as relative time."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return f"<t:{int(value.timestamp())}:{style}>"


def format_minutes(minutes: Optional[int]) -> str:
    """Convert a reminder interval in minutes to a short human string."""
    if not minutes:
        return "Off"
    if minutes % 10080 == 0:
        weeks = minutes // 10080
        return f"{weeks} week{'s' if weeks != 1 else ''}"
    if minutes % 1440 == 0:
        days = minutes // 1440
        return f"{days} day{'s' if days != 1 else ''}"
    if minutes % 60 == 0:
        hours = minutes // 60
        return f"{hours} hour{'s' if hours != 1 else ''}"
    return f"{minutes} mins"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 1)] + "…"
