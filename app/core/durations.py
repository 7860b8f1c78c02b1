"""Duration strings used by the token expiry settings ("15m", "1h", "7d")."""

import re
from datetime import timedelta

_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$", re.IGNORECASE)


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string into a timedelta.

    A bare integer is read as seconds. Zero and negative durations are
    rejected since a token that is born expired is a configuration mistake.
    """
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r} (expected e.g. 30s, 15m, 1h, 7d, 2w)")

    amount = int(match.group(1))
    unit = match.group(2).lower() or "s"
    if amount <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")

    return timedelta(**{_UNITS[unit]: amount})
