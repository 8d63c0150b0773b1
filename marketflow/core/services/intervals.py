"""Interval notation parsing and calendar-aware timestamp arithmetic."""

from __future__ import annotations

from datetime import UTC, datetime

from dateutil.relativedelta import relativedelta

from marketflow.core.exceptions import InvalidIntervalError
from marketflow.core.models.interval import Denomination, Interval

_CODES = {denomination.code: denomination for denomination in Denomination}

_SINGLE_CHARACTERS = {
    "s": Denomination.SECONDS,
    "S": Denomination.SECONDS,
    "m": Denomination.MINUTES,
    "h": Denomination.HOURS,
    "H": Denomination.HOURS,
    "d": Denomination.DAYS,
    "D": Denomination.DAYS,
    "M": Denomination.MONTHS,
    "y": Denomination.YEARS,
    "Y": Denomination.YEARS,
}

# Checked in order; a word must match exactly or carry a single plural "s".
_WORDS = (
    ("second", Denomination.SECONDS),
    ("minute", Denomination.MINUTES),
    ("hour", Denomination.HOURS),
    ("day", Denomination.DAYS),
    ("month", Denomination.MONTHS),
    ("year", Denomination.YEARS),
)

_DELTA_UNITS = {
    Denomination.SECONDS: "seconds",
    Denomination.MINUTES: "minutes",
    Denomination.HOURS: "hours",
    Denomination.DAYS: "days",
    Denomination.MONTHS: "months",
    Denomination.YEARS: "years",
}


def parse_denomination(text: str) -> Denomination:
    """Parse a denomination code, single character or English word."""

    if len(text) == 3:
        if text.upper() in _CODES:
            return _CODES[text.upper()]
        raise InvalidIntervalError(
            f"The specified three character interval denomination {text} is unknown.",
            value=text,
        )
    if len(text) == 1:
        try:
            return _SINGLE_CHARACTERS[text]
        except KeyError:
            raise InvalidIntervalError(
                f"The specified single character interval denomination {text} is unknown.",
                value=text,
            ) from None

    lowered = text.lower()
    for word, denomination in _WORDS:
        if not lowered.startswith(word):
            continue
        if lowered == word or lowered == f"{word}s":
            return denomination
        raise InvalidIntervalError(
            f'The specified interval denomination {text} is invalid. Did you mean "{word.capitalize()}s"?',
            value=text,
        )
    raise InvalidIntervalError(f"The specified interval denomination {text} is unknown.", value=text)


def parse_interval(text: str) -> Interval:
    """Parse interval notation such as ``15MIN``, ``1d`` or ``2Hours``."""

    value = text.strip()
    digits = 0
    for character in value:
        if not character.isdigit():
            break
        digits += 1

    if digits == 0:
        raise InvalidIntervalError(
            f"The interval {text!r} must start with a positive integer length.",
            value=text,
        )
    if digits == len(value):
        raise InvalidIntervalError(f"The interval {text!r} is missing a denomination.", value=text)

    denomination = parse_denomination(value[digits:])
    return Interval(denomination, int(value[:digits]))


def coerce_interval(value: Interval | str) -> Interval:
    if isinstance(value, Interval):
        return value
    if isinstance(value, str):
        return parse_interval(value)
    raise InvalidIntervalError(f"Expected an interval or interval notation, got {type(value).__name__}.")


def format_interval(interval: Interval) -> str:
    """Render the canonical notation, e.g. ``15MIN``."""

    return f"{interval.length}{interval.denomination.code}"


def describe_interval(interval: Interval) -> str:
    """Render a human readable form, e.g. ``15 Minutes``."""

    name = interval.denomination.display_name
    return f"{interval.length} {name}" if interval.length == 1 else f"{interval.length} {name}s"


def interval_step(interval: Interval, count: int = 1) -> relativedelta:
    """Return ``count`` interval steps as a calendar-aware delta."""

    unit = _DELTA_UNITS[interval.denomination]
    return relativedelta(**{unit: interval.length * count})


def add_intervals(moment: datetime, interval: Interval, count: int = 1) -> datetime:
    """Advance ``moment`` by ``count`` intervals; negative counts step backwards."""

    return moment + interval_step(interval, count)


def to_naive_utc(moment: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed to be UTC already."""

    if moment.tzinfo is None:
        return moment
    return moment.astimezone(UTC).replace(tzinfo=None)


def next_tick(moment: datetime, interval: Interval) -> datetime:
    return add_intervals(moment, interval, 1)


def previous_tick(moment: datetime, interval: Interval) -> datetime:
    return add_intervals(moment, interval, -1)


__all__ = [
    "add_intervals",
    "coerce_interval",
    "describe_interval",
    "format_interval",
    "interval_step",
    "next_tick",
    "parse_denomination",
    "parse_interval",
    "previous_tick",
    "to_naive_utc",
]
