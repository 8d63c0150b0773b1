"""Interval value types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from marketflow.core.exceptions import InvalidIntervalError


class Denomination(str, Enum):
    """时间间隔单位枚举."""

    SECONDS = "SEC"
    MINUTES = "MIN"
    HOURS = "HRS"
    DAYS = "DAY"
    MONTHS = "MTH"
    YEARS = "YRS"

    @property
    def code(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        """Singular English name, e.g. ``Minute``."""

        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Denomination.SECONDS: "Second",
    Denomination.MINUTES: "Minute",
    Denomination.HOURS: "Hour",
    Denomination.DAYS: "Day",
    Denomination.MONTHS: "Month",
    Denomination.YEARS: "Year",
}

_RANKS = {denomination: rank for rank, denomination in enumerate(Denomination)}


@dataclass(frozen=True)
class Interval:
    """A positive number of denomination units, e.g. 15 minutes."""

    denomination: Denomination
    length: int

    def __post_init__(self) -> None:
        if not isinstance(self.length, int) or isinstance(self.length, bool) or self.length <= 0:
            raise InvalidIntervalError(
                f"Interval length must be a positive integer, got {self.length!r}.",
                value=f"{self.length}{self.denomination.code}",
            )

    def __str__(self) -> str:
        return f"{self.length}{self.denomination.code}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Interval):
            return NotImplemented
        return (_RANKS[self.denomination], self.length) < (_RANKS[other.denomination], other.length)


__all__ = ["Denomination", "Interval"]
