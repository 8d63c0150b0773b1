from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from marketflow.core.exceptions import InvalidIntervalError, InvalidRangeError, RangeNarrowingError
from marketflow.core.models import Denomination, Interval, MarketFlow, MarketInstant, TimeRange
from marketflow.core.services.flows import FlowBuilder, covering_bounds


def _day(number: int) -> datetime:
    return datetime(2024, 1, number)


def _point(moment: datetime | None, price: float = 100.0) -> MarketInstant:
    return MarketInstant(time=moment, open=price, high=price + 1, low=price - 1, close=price, volume=1.0)


def _builder(interval: Interval, days: list[int], **bounds) -> FlowBuilder:
    builder = FlowBuilder(interval)
    builder.upsert(_point(_day(number)) for number in days)
    if bounds:
        builder.widen(bounds.get("start"), bounds.get("end"))
    return builder


class TestUpsert:
    def test_points_are_ordered_by_time(self, daily) -> None:
        builder = FlowBuilder(daily)
        builder.upsert([_point(_day(3)), _point(_day(1)), _point(_day(2))])

        flow = builder.build()

        assert [point.time for point in flow.points] == [_day(1), _day(2), _day(3)]
        assert flow.first_time == _day(1)
        assert flow.last_time == _day(3)

    def test_later_point_replaces_earlier_point_at_the_same_time(self, daily) -> None:
        builder = FlowBuilder(daily)
        builder.upsert([_point(_day(1), 100.0)])
        builder.upsert([_point(_day(1), 250.0)])

        flow = builder.build()

        assert len(flow) == 1
        assert flow.points[0].open == 250.0

    def test_points_without_time_are_skipped_with_a_warning(self, daily, diagnostics) -> None:
        builder = FlowBuilder(daily, diagnostics=diagnostics)

        accepted = builder.upsert([_point(None), _point(_day(1))])

        assert accepted == 1
        assert len(builder) == 1
        assert len(diagnostics.warnings) == 1

    def test_aware_times_are_stored_as_naive_utc(self, daily) -> None:
        builder = _builder(daily, [1])
        plus_two = timezone(timedelta(hours=2))

        builder.upsert([_point(datetime(2024, 1, 2, 2, 0, tzinfo=plus_two))])
        builder.widen(datetime(2024, 1, 1, tzinfo=UTC), datetime(2024, 1, 3, 2, 0, tzinfo=plus_two))
        flow = builder.build()

        assert [point.time for point in flow.points] == [_day(1), _day(2)]
        assert (flow.start, flow.end) == (_day(1), _day(3))
        assert builder.find_gap(datetime(2024, 1, 1, tzinfo=UTC)) is None

    def test_editing_a_flow_of_another_interval_is_rejected(self, daily) -> None:
        flow = MarketFlow(interval=Interval(Denomination.HOURS, 1))

        with pytest.raises(InvalidIntervalError):
            FlowBuilder(daily, flow)


class TestWiden:
    def test_bounds_only_grow(self, daily) -> None:
        builder = _builder(daily, [2, 3], start=_day(2), end=_day(3))

        builder.widen(_day(1), _day(5))

        assert (builder.start, builder.end) == (_day(1), _day(5))

    def test_a_narrower_start_raises(self, daily) -> None:
        builder = _builder(daily, [2, 3], start=_day(1), end=_day(5))

        with pytest.raises(RangeNarrowingError):
            builder.widen(start=_day(2))

        assert builder.start == _day(1)

    def test_a_narrower_end_raises(self, daily) -> None:
        builder = _builder(daily, [2, 3], start=_day(1), end=_day(5))

        with pytest.raises(RangeNarrowingError):
            builder.widen(end=_day(4))

    def test_narrowing_is_a_range_error(self) -> None:
        assert issubclass(RangeNarrowingError, InvalidRangeError)

    def test_bounds_must_contain_the_points(self, daily) -> None:
        builder = _builder(daily, [1, 5])

        with pytest.raises(InvalidRangeError):
            builder.widen(start=_day(2))

        with pytest.raises(InvalidRangeError):
            builder.widen(end=_day(4))

    def test_start_after_end_is_rejected(self, daily) -> None:
        builder = FlowBuilder(daily)

        with pytest.raises(InvalidRangeError):
            builder.widen(_day(5), _day(1))

    def test_swapped_stored_bounds_are_repaired(self, daily, diagnostics) -> None:
        flow = MarketFlow(interval=daily, start=_day(5), end=_day(1))

        builder = FlowBuilder(daily, flow, diagnostics=diagnostics)

        assert (builder.start, builder.end) == (_day(1), _day(5))
        assert diagnostics.warnings


class TestFindGap:
    def test_single_missing_day(self, daily) -> None:
        builder = _builder(daily, [1, 2, 4])

        assert builder.find_gap() == TimeRange(_day(3), _day(3))

    def test_gap_spans_every_missing_tick(self, daily) -> None:
        builder = _builder(daily, [1, 5, 6])

        assert builder.find_gap() == TimeRange(_day(2), _day(4))

    def test_first_gap_is_returned(self, daily) -> None:
        builder = _builder(daily, [1, 3, 4, 7])

        assert builder.find_gap() == TimeRange(_day(2), _day(2))

    def test_no_gap_when_fully_populated_or_sparse(self, daily) -> None:
        assert _builder(daily, [1, 2, 3]).find_gap() is None
        assert _builder(daily, [1]).find_gap() is None
        assert FlowBuilder(daily).find_gap() is None

    def test_search_is_restricted_to_the_range(self, daily) -> None:
        builder = _builder(daily, [1, 3, 4, 7])

        assert builder.find_gap(start=_day(3)) == TimeRange(_day(5), _day(6))
        assert builder.find_gap(end=_day(4)) == TimeRange(_day(2), _day(2))
        assert builder.find_gap(start=_day(3), end=_day(4)) is None

    def test_misaligned_ticks_are_not_gaps(self) -> None:
        hourly = Interval(Denomination.HOURS, 1)
        builder = FlowBuilder(hourly)
        builder.upsert(
            [
                _point(datetime(2024, 1, 1, 0, 0)),
                _point(datetime(2024, 1, 1, 1, 30)),
                _point(datetime(2024, 1, 1, 2, 30)),
            ]
        )

        assert builder.find_gap() is None

    def test_months_use_calendar_steps(self) -> None:
        monthly = Interval(Denomination.MONTHS, 1)
        builder = FlowBuilder(monthly)
        builder.upsert([_point(datetime(2024, 1, 1)), _point(datetime(2024, 2, 1)), _point(datetime(2024, 5, 1))])

        assert builder.find_gap() == TimeRange(datetime(2024, 3, 1), datetime(2024, 4, 1))


class TestQueries:
    def test_points_between_is_inclusive(self, daily) -> None:
        builder = _builder(daily, [1, 2, 3, 4])

        assert [point.time for point in builder.points_between(_day(2), _day(3))] == [_day(2), _day(3)]
        assert len(builder.points_between()) == 4

    def test_retain_drops_rejected_points(self, daily) -> None:
        builder = _builder(daily, [1, 2, 3, 4])

        removed = builder.retain(lambda moment: moment.day % 2 == 0)

        assert removed == 2
        assert builder.first_time == _day(2)
        assert builder.last_time == _day(4)


class TestCoveringBounds:
    def test_unbounded_sides_stay_unbounded(self) -> None:
        assert covering_bounds(None, [_day(1), _day(3)]) == (None, None)

    def test_requested_bounds_widen_to_the_points(self) -> None:
        requested = TimeRange(_day(2), _day(3))

        assert covering_bounds(None, [_day(1), _day(5)], requested) == (_day(1), _day(5))

    def test_existing_bounds_are_kept(self, daily) -> None:
        existing = MarketFlow(interval=daily, start=_day(1), end=_day(10))

        assert covering_bounds(existing, [_day(4)], TimeRange(_day(3), None)) == (_day(1), _day(10))

    def test_aware_inputs_are_compared_as_naive_utc(self, daily) -> None:
        existing = _builder(daily, [2]).build()
        requested = TimeRange(datetime(2024, 1, 1, tzinfo=UTC), None)

        assert covering_bounds(existing, [datetime(2024, 1, 3, tzinfo=UTC)], requested) == (_day(1), None)

    def test_stored_points_before_the_request_stay_covered(self, daily) -> None:
        existing = _builder(daily, [1, 2]).build()

        assert covering_bounds(existing, [_day(3)], TimeRange(_day(2), _day(4))) == (_day(1), _day(4))
