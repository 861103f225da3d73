"""
Human-friendly lifespan parsing.

Accepts compound strings such as "30m", "1d2h30m", "1.5h" or "2w". All
units are fixed-width: a day is 24h, a week 7d, a month 30d and a year 365d.
"""
import re
from datetime import timedelta
from decimal import ROUND_HALF_EVEN, Decimal

from app.shared.core.exceptions import DurationParseError

_US = Decimal(1)
_SECOND = Decimal(1_000_000)
_DAY = 86_400 * _SECOND

UNIT_MICROSECONDS: dict[str, Decimal] = {
    "ns": Decimal("0.001"),
    "us": _US,
    "µs": _US,  # U+00B5 micro sign
    "μs": _US,  # U+03BC greek mu
    "ms": Decimal(1000),
    "s": _SECOND,
    "m": 60 * _SECOND,
    "h": 3600 * _SECOND,
    "d": _DAY,
    "w": 7 * _DAY,
    "mo": 30 * _DAY,
    "y": 365 * _DAY,
}

# Longer units first so "ms" and "mo" win over "m"
_TOKEN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|mo|s|m|h|d|w|y)")


def parse_duration(text: str) -> timedelta:
    """Parse ``text`` into a timedelta or raise DurationParseError."""
    if not isinstance(text, str):
        raise DurationParseError(f"duration must be a string, got {type(text).__name__}")
    value = text.strip()
    if not value:
        raise DurationParseError("duration is empty")

    sign = 1
    if value[0] in "+-":
        sign = -1 if value[0] == "-" else 1
        value = value[1:]
    if value == "0":
        return timedelta(0)
    if not value:
        raise DurationParseError(f"invalid duration '{text}'")

    total = Decimal(0)
    pos = 0
    while pos < len(value):
        match = _TOKEN.match(value, pos)
        if match is None:
            raise DurationParseError(
                f"invalid duration '{text}'", details={"position": pos}
            )
        total += Decimal(match.group(1)) * UNIT_MICROSECONDS[match.group(2)]
        pos = match.end()

    microseconds = int(total.to_integral_value(rounding=ROUND_HALF_EVEN))
    try:
        return timedelta(microseconds=sign * microseconds)
    except OverflowError as exc:
        raise DurationParseError(f"duration '{text}' is out of range") from exc


def format_duration(delta: timedelta) -> str:
    """Canonical compound form, e.g. timedelta(days=1, minutes=30) -> "1d30m"."""
    total = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)

    seconds, micros = divmod(total, 1_000_000)
    minutes, secs = divmod(seconds, 60)
    hours, mins = divmod(minutes, 60)
    days, hrs = divmod(hours, 24)

    parts = [
        f"{value}{unit}"
        for value, unit in ((days, "d"), (hrs, "h"), (mins, "m"), (secs, "s"), (micros, "us"))
        if value
    ]
    return sign + "".join(parts)
