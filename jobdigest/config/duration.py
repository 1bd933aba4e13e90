"""Duration parsing for configuration windows such as ``created_since``."""

import re

_ISO8601_PATTERN = re.compile(r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$")
_HUMAN_PATTERN = re.compile(r"(\d+)\s*([smhd])")

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to seconds.

    Accepts human-readable values ("30m", "72h", "1d12h") and ISO-8601
    durations ("PT30M", "P3D").

    Args:
        duration_str: Duration string to parse

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("72h")
        259200
        >>> parse_duration("P1DT12H")
        129600
    """
    value = (duration_str or "").strip()
    if not value:
        raise DurationParseError("Duration string cannot be empty")

    if value.upper().startswith("P"):
        total = _parse_iso8601(value.upper())
    else:
        total = _parse_human_readable(value.lower())

    if total == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")
    return total


def _parse_iso8601(value: str) -> int:
    match = _ISO8601_PATTERN.match(value)
    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{value}'. "
            "Expected format like 'P2D', 'PT1H30M', 'PT15M', or 'PT30S'"
        )

    days, hours, minutes, seconds = match.groups()
    return (
        int(days or 0) * _UNIT_SECONDS["d"]
        + int(hours or 0) * _UNIT_SECONDS["h"]
        + int(minutes or 0) * _UNIT_SECONDS["m"]
        + int(float(seconds or 0))
    )


def _parse_human_readable(value: str) -> int:
    matches = _HUMAN_PATTERN.findall(value)
    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{value}'. "
            "Expected format like '30m', '72h', '2d', or combinations like '1d12h'"
        )

    # Every character must belong to a number+unit pair
    consumed = "".join(f"{num}{unit}" for num, unit in matches)
    if consumed != re.sub(r"\s+", "", value):
        raise DurationParseError(
            f"Invalid characters in duration: '{value}'. "
            "Use only digits and units: s (seconds), m (minutes), h (hours), d (days)"
        )

    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in matches)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Duration",
) -> None:
    """
    Validate that a duration is within an acceptable range.

    Raises:
        DurationParseError: If the duration is outside [min_seconds, max_seconds]
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {format_seconds(duration_seconds)}. "
            f"Minimum is {format_seconds(min_seconds)}."
        )
    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {format_seconds(duration_seconds)}. "
            f"Maximum is {format_seconds(max_seconds)}."
        )


def format_seconds(seconds: int) -> str:
    """Render seconds in the largest whole unit, e.g. ``"3 days"``."""
    for unit_seconds, name in ((86400, "day"), (3600, "hour"), (60, "minute")):
        if seconds >= unit_seconds:
            amount = seconds // unit_seconds
            return f"{amount} {name}{'s' if amount != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
