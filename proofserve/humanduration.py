"""Config-friendly durations.

A duration may be given either as a human-readable string such as ``"1h"``
or ``"15min"``, or as an integer taken as a number of seconds. Durations are
always written back as human-readable strings.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

__all__ = [
    "parse_duration",
    "format_duration",
    "deserialize_duration",
    "serialize_duration",
]

_NANOS_PER_SECOND = 1_000_000_000
_SECONDS_PER_DAY = 86_400
_SECONDS_PER_MONTH = 2_630_016  # 30.44 days
_SECONDS_PER_YEAR = 31_557_600  # 365.25 days

_UNITS: dict[str, int] = {
    **dict.fromkeys(("nsec", "ns"), 1),
    **dict.fromkeys(("usec", "us", "µs"), 1_000),
    **dict.fromkeys(("msec", "ms"), 1_000_000),
    **dict.fromkeys(("seconds", "second", "secs", "sec", "s"), _NANOS_PER_SECOND),
    **dict.fromkeys(("minutes", "minute", "mins", "min", "m"), 60 * _NANOS_PER_SECOND),
    **dict.fromkeys(("hours", "hour", "hrs", "hr", "h"), 3_600 * _NANOS_PER_SECOND),
    **dict.fromkeys(("days", "day", "d"), _SECONDS_PER_DAY * _NANOS_PER_SECOND),
    **dict.fromkeys(("weeks", "week", "w"), 7 * _SECONDS_PER_DAY * _NANOS_PER_SECOND),
    **dict.fromkeys(("months", "month", "M"), _SECONDS_PER_MONTH * _NANOS_PER_SECOND),
    **dict.fromkeys(("years", "year", "y"), _SECONDS_PER_YEAR * _NANOS_PER_SECOND),
}

_PART_PATTERN = re.compile(r"\s*(\d+)([^\d\s]*)")


def parse_duration(text: str) -> timedelta:
    """Parse a human-readable duration such as ``"10m 1s"`` or ``"1h30min"``."""
    if not isinstance(text, str):
        raise TypeError(f"expected a string, got {type(text).__name__}")
    stripped = text.strip()
    if not stripped:
        raise ValueError("value was empty")

    total_nanos = 0
    pos = 0
    while pos < len(stripped):
        match = _PART_PATTERN.match(stripped, pos)
        if match is None:
            raise ValueError(f"invalid character at {pos} in {text!r}")
        number, unit = match.groups()
        if not unit:
            raise ValueError(
                f"time unit needed, for example {number}sec or {number}ms"
            )
        try:
            factor = _UNITS[unit]
        except KeyError:
            raise ValueError(f"unknown time unit {unit!r} in {text!r}") from None
        total_nanos += int(number) * factor
        pos = match.end()

    try:
        return timedelta(microseconds=total_nanos // 1_000)
    except OverflowError:
        raise ValueError(f"duration {text!r} is too large") from None


def format_duration(duration: timedelta) -> str:
    """Render a duration the way :func:`parse_duration` reads it, e.g. ``"10m 1s"``."""
    if duration < timedelta(0):
        raise ValueError("negative durations cannot be formatted")
    total_micros = duration // timedelta(microseconds=1)
    seconds_total, micros_total = divmod(total_micros, 1_000_000)
    if seconds_total == 0 and micros_total == 0:
        return "0s"

    years, rest = divmod(seconds_total, _SECONDS_PER_YEAR)
    months, rest = divmod(rest, _SECONDS_PER_MONTH)
    days, rest = divmod(rest, _SECONDS_PER_DAY)
    hours, rest = divmod(rest, 3_600)
    minutes, seconds = divmod(rest, 60)
    millis, micros = divmod(micros_total, 1_000)

    parts: list[str] = []
    for value, name in ((years, "year"), (months, "month"), (days, "day")):
        if value:
            parts.append(f"{value}{name}{'s' if value > 1 else ''}")
    for value, unit in (
        (hours, "h"),
        (minutes, "m"),
        (seconds, "s"),
        (millis, "ms"),
        (micros, "us"),
    ):
        if value:
            parts.append(f"{value}{unit}")
    return " ".join(parts)


def deserialize_duration(value: Any) -> timedelta:
    """Read a duration from a config value: whole seconds or a human string."""
    if isinstance(value, bool):
        raise ValueError("a boolean is not a duration")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"a duration in seconds cannot be negative: {value}")
        try:
            return timedelta(seconds=value)
        except OverflowError:
            raise ValueError(f"duration of {value} seconds is too large") from None
    if isinstance(value, str):
        return parse_duration(value)
    raise ValueError(
        f"expected seconds or a human-readable duration, got {type(value).__name__}"
    )


def serialize_duration(duration: timedelta) -> str:
    """Write a duration as a config value."""
    return format_duration(duration)