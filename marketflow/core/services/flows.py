"""Per (symbol, interval) time-series working copies."""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from datetime import datetime

from marketflow.core.exceptions import InvalidIntervalError, InvalidRangeError, RangeNarrowingError
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import MarketFlow, MarketInstant, TimeRange
from marketflow.core.services.intervals import add_intervals, format_interval, to_naive_utc


class FlowBuilder:
    """Mutable working copy of a :class:`MarketFlow`.

    Points are keyed by time so that a later write for the same timestamp
    replaces the earlier one. Declared bounds only ever widen.
    """

    def __init__(
        self,
        interval: Interval,
        flow: MarketFlow | None = None,
        *,
        label: str = "",
        diagnostics: Diagnostics | None = None,
    ) -> None:
        if flow is not None and flow.interval != interval:
            raise InvalidIntervalError(
                f"Cannot edit a {format_interval(flow.interval)} flow as {format_interval(interval)}.",
                value=format_interval(interval),
            )
        self.interval = interval
        self._label = label or format_interval(interval)
        self._diagnostics = diagnostics or get_logger("marketflow.flows")
        self._points: dict[datetime, MarketInstant] = {}
        self._times: list[datetime] | None = None
        self._start: datetime | None = None
        self._end: datetime | None = None

        if flow is not None:
            start, end = _naive(flow.start), _naive(flow.end)
            if start is not None and end is not None and start > end:
                self._diagnostics.warning(
                    f"Stored bounds of {self._label} are swapped ({start} after {end}); swapping them back."
                )
                start, end = end, start
            self._start, self._end = start, end
            self.upsert(flow.points)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def start(self) -> datetime | None:
        return self._start

    @property
    def end(self) -> datetime | None:
        return self._end

    @property
    def first_time(self) -> datetime | None:
        times = self._sorted_times()
        return times[0] if times else None

    @property
    def last_time(self) -> datetime | None:
        times = self._sorted_times()
        return times[-1] if times else None

    def upsert(self, points: Iterable[MarketInstant]) -> int:
        """Insert or overwrite points by time and return how many were accepted."""

        accepted = 0
        for point in points:
            if point.time is None:
                self._diagnostics.warning(
                    f"A data point for {self._label} has no time value and cannot be included."
                )
                continue
            if point.time.tzinfo is not None:
                point = replace(point, time=to_naive_utc(point.time))
            if point.time not in self._points:
                self._times = None
            self._points[point.time] = point
            accepted += 1
        return accepted

    def widen(self, start: datetime | None = None, end: datetime | None = None) -> None:
        """Extend the declared bounds to cover ``start`` and ``end``."""

        start, end = _naive(start), _naive(end)
        if start is not None and self._start is not None and start > self._start:
            raise RangeNarrowingError(
                f"The start time {start} would narrow the coverage of {self._label}, "
                f"which already starts at {self._start}.",
                start=start,
                end=end,
            )
        if end is not None and self._end is not None and end < self._end:
            raise RangeNarrowingError(
                f"The end time {end} would narrow the coverage of {self._label}, which already ends at {self._end}.",
                start=start,
                end=end,
            )

        new_start = start if start is not None else self._start
        new_end = end if end is not None else self._end
        self._validate(new_start, new_end)
        self._start, self._end = new_start, new_end

    def find_gap(self, start: datetime | None = None, end: datetime | None = None) -> TimeRange | None:
        """Return the first run of missing ticks between stored points in ``[start, end]``.

        The range runs from one step after the last point before the gap to one
        step before the first point after it.
        """

        times = self._times_between(start, end)
        if len(times) < 2:
            return None

        previous = times[0]
        for current in times[1:]:
            expected = add_intervals(previous, self.interval)
            if current > expected:
                gap_end = add_intervals(current, self.interval, -1)
                if expected <= gap_end:
                    return TimeRange(expected, gap_end)
            previous = current
        return None

    def points_between(self, start: datetime | None = None, end: datetime | None = None) -> list[MarketInstant]:
        return [self._points[time] for time in self._times_between(start, end)]

    def retain(self, keep: Callable[[datetime], bool]) -> int:
        """Drop points whose time is rejected by ``keep``; returns the number removed."""

        removed = [time for time in self._points if not keep(time)]
        for time in removed:
            del self._points[time]
        if removed:
            self._times = None
        return len(removed)

    def build(self) -> MarketFlow:
        self._validate(self._start, self._end)
        times = self._sorted_times()
        return MarketFlow(
            interval=self.interval,
            start=self._start,
            end=self._end,
            points=tuple(self._points[time] for time in times),
        )

    def _validate(self, start: datetime | None, end: datetime | None) -> None:
        if start is not None and end is not None and start > end:
            raise InvalidRangeError(
                f"The start time {start} of {self._label} comes after its end time {end}.",
                start=start,
                end=end,
            )
        times = self._sorted_times()
        if not times:
            return
        if start is not None and times[0] < start:
            raise InvalidRangeError(
                f"The start time {start} restricts the points of {self._label}: "
                f"the first point at {times[0]} comes before it.",
                start=start,
                end=end,
            )
        if end is not None and times[-1] > end:
            raise InvalidRangeError(
                f"The end time {end} restricts the points of {self._label}: "
                f"the last point at {times[-1]} comes after it.",
                start=start,
                end=end,
            )

    def _sorted_times(self) -> list[datetime]:
        if self._times is None:
            self._times = sorted(self._points)
        return self._times

    def _times_between(self, start: datetime | None, end: datetime | None) -> list[datetime]:
        start, end = _naive(start), _naive(end)
        times = self._sorted_times()
        low = bisect_left(times, start) if start is not None else 0
        high = bisect_right(times, end) if end is not None else len(times)
        return times[low:high]


def _naive(moment: datetime | None) -> datetime | None:
    return to_naive_utc(moment) if moment is not None else None


def covering_bounds(
    existing: MarketFlow | None,
    times: Sequence[datetime],
    requested: TimeRange | None = None,
) -> tuple[datetime | None, datetime | None]:
    """Declared bounds that keep ``existing`` and cover new points at ``times``.

    A side gets a bound only when the request or the stored flow has one
    there; it is then widened to the stored and new points so merging never
    narrows.
    """

    requested = requested or TimeRange()
    stored_start = existing.start if existing is not None else None
    stored_end = existing.end if existing is not None else None
    starts = [moment for moment in (_naive(requested.start), stored_start) if moment is not None]
    ends = [moment for moment in (_naive(requested.end), stored_end) if moment is not None]
    covered = [to_naive_utc(moment) for moment in times]
    if existing is not None:
        covered.extend(moment for moment in (existing.first_time, existing.last_time) if moment is not None)
    if covered:
        if starts:
            starts.append(min(covered))
        if ends:
            ends.append(max(covered))
    return (min(starts) if starts else None, max(ends) if ends else None)


__all__ = ["FlowBuilder", "covering_bounds"]
