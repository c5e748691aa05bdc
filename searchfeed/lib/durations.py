"""Duration string parsing.

Durations are written the way the poller configuration has always written
them: a sequence of decimal numbers each followed by a unit, such as
"300ms", "90s", "5m" or "1h30m".
"""

from __future__ import annotations

import re
from datetime import timedelta

__all__ = ["parse_duration", "is_duration"]

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration string into a timedelta.

    Raises:
        ValueError: If the string is not a valid duration

    Example:
        >>> parse_duration("1h30m")
        datetime.timedelta(seconds=5400)
    """
    text = value.strip()
    if not text:
        raise ValueError("Empty duration string")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if not match:
            raise ValueError(f"Invalid duration: '{value}'")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ValueError(f"Invalid duration: '{value}'")

    return timedelta(seconds=sign * total)


def is_duration(value: str) -> bool:
    try:
        parse_duration(value)
    except ValueError:
        return False
    return True
