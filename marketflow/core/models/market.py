"""Market time-series models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from marketflow.core.models.interval import Interval


@dataclass(frozen=True)
class MarketInstant:
    """单个OHLCV数据点.

    ``time`` is ``None`` for rows that could not be timestamped; such points
    are rejected when upserted into a flow.
    """

    time: datetime | None
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class TimeRange:
    """Inclusive time range; a missing bound is unbounded on that side."""

    start: datetime | None = None
    end: datetime | None = None

    def __contains__(self, moment: object) -> bool:
        if not isinstance(moment, datetime):
            return False
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True

    def __str__(self) -> str:
        start = self.start.isoformat() if self.start else ""
        end = self.end.isoformat() if self.end else ""
        return f"[{start},{end}]"


@dataclass(frozen=True)
class MarketFlow:
    """Time series of one symbol at one interval.

    ``start`` and ``end`` are the inclusive bounds the flow claims to cover.
    ``points`` are ordered by strictly increasing time.
    """

    interval: Interval
    start: datetime | None = None
    end: datetime | None = None
    points: tuple[MarketInstant, ...] = ()

    def __len__(self) -> int:
        return len(self.points)

    @property
    def first_time(self) -> datetime | None:
        return self.points[0].time if self.points else None

    @property
    def last_time(self) -> datetime | None:
        return self.points[-1].time if self.points else None


@dataclass(frozen=True)
class SymbolIntervalGroup:
    """All flows of one symbol keyed by interval."""

    flows: Mapping[Interval, MarketFlow] = field(default_factory=dict)

    def get(self, interval: Interval) -> MarketFlow | None:
        return self.flows.get(interval)

    def intervals(self) -> list[Interval]:
        return sorted(self.flows)

    def __len__(self) -> int:
        return len(self.flows)


__all__ = ["MarketInstant", "MarketFlow", "SymbolIntervalGroup", "TimeRange"]
