import re
from datetime import timedelta

_DURATION_RE = re.compile(
    r"(\d+)\s*(s|sec|second|seconds|m|min|minute|minutes|h|hr|hour|hours|d|day|days|w|week|weeks|mo|month|months)",
    re.IGNORECASE,
)

_UNIT_SECONDS = {
    "s": 1,
    "sec": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
    "mo": 2592000,
    "month": 2592000,
    "months": 2592000,
}


def parse_duration(duration_str):
    """Parse strings such as ``"10m"`` or ``"2 hours"`` into a timedelta."""
    if duration_str is None:
        return None

    match = _DURATION_RE.fullmatch(str(duration_str).strip())
    if not match:
        return None

    value, unit = match.groups()
    return timedelta(seconds=int(value) * _UNIT_SECONDS[unit.lower()])


def duration_to_minutes(value) -> int | None:
    """Return *value* in whole minutes; bare numbers are already minutes."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip() if value is not None else ""
    if text.lstrip("-").isdigit():
        return int(text)
    delta = parse_duration(text)
    if delta is None:
        return None
    return int(delta.total_seconds() // 60)


def now_ms(clock) -> int:
    return int(clock() * 1000)
