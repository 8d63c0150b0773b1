from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from marketflow.core.exceptions import InvalidIntervalError
from marketflow.core.models import Denomination, Interval
from marketflow.core.services.intervals import (
    add_intervals,
    coerce_interval,
    describe_interval,
    format_interval,
    next_tick,
    parse_denomination,
    parse_interval,
    previous_tick,
    to_naive_utc,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("15MIN", Interval(Denomination.MINUTES, 15)),
        ("15min", Interval(Denomination.MINUTES, 15)),
        ("1d", Interval(Denomination.DAYS, 1)),
        ("1D", Interval(Denomination.DAYS, 1)),
        ("4h", Interval(Denomination.HOURS, 4)),
        ("30s", Interval(Denomination.SECONDS, 30)),
        ("5m", Interval(Denomination.MINUTES, 5)),
        ("6M", Interval(Denomination.MONTHS, 6)),
        ("2Y", Interval(Denomination.YEARS, 2)),
        ("2Hours", Interval(Denomination.HOURS, 2)),
        ("1hour", Interval(Denomination.HOURS, 1)),
        ("3MONTHS", Interval(Denomination.MONTHS, 3)),
        (" 1DAY ", Interval(Denomination.DAYS, 1)),
    ],
)
def test_parse_interval_accepts_all_notations(text: str, expected: Interval) -> None:
    assert parse_interval(text) == expected


@pytest.mark.parametrize("text", ["MIN", "", "15", "-1MIN", "15XYZ", "15q", "15Minutez"])
def test_parse_interval_rejects_malformed_text(text: str) -> None:
    with pytest.raises(InvalidIntervalError):
        parse_interval(text)


def test_zero_length_is_rejected() -> None:
    with pytest.raises(InvalidIntervalError, match="positive integer"):
        parse_interval("0MIN")

    with pytest.raises(InvalidIntervalError):
        Interval(Denomination.DAYS, 0)


def test_misspelled_word_carries_a_suggestion() -> None:
    with pytest.raises(InvalidIntervalError) as exc_info:
        parse_denomination("Dayss")

    assert 'Did you mean "Days"?' in exc_info.value.message
    assert exc_info.value.details["value"] == "Dayss"


def test_invalid_interval_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_interval("abc")


@pytest.mark.parametrize("denomination", list(Denomination))
def test_format_then_parse_round_trips(denomination: Denomination) -> None:
    interval = Interval(denomination, 7)

    assert format_interval(interval) == f"7{denomination.code}"
    assert parse_interval(format_interval(interval)) == interval


def test_describe_interval_pluralizes() -> None:
    assert describe_interval(Interval(Denomination.DAYS, 1)) == "1 Day"
    assert describe_interval(Interval(Denomination.MINUTES, 15)) == "15 Minutes"


def test_coerce_interval_accepts_values_and_text() -> None:
    interval = Interval(Denomination.HOURS, 1)

    assert coerce_interval(interval) is interval
    assert coerce_interval("1HRS") == interval
    with pytest.raises(InvalidIntervalError):
        coerce_interval(60)  # type: ignore[arg-type]


def test_intervals_sort_by_denomination_then_length() -> None:
    intervals = [
        Interval(Denomination.DAYS, 1),
        Interval(Denomination.MINUTES, 15),
        Interval(Denomination.MINUTES, 1),
        Interval(Denomination.YEARS, 1),
    ]

    assert [format_interval(interval) for interval in sorted(intervals)] == ["1MIN", "15MIN", "1DAY", "1YRS"]


class TestCalendarSteps:
    def test_month_steps_follow_the_calendar(self) -> None:
        monthly = Interval(Denomination.MONTHS, 1)

        assert next_tick(datetime(2024, 1, 31), monthly) == datetime(2024, 2, 29)
        assert next_tick(datetime(2024, 2, 1), monthly) == datetime(2024, 3, 1)

    def test_year_steps_handle_leap_days(self) -> None:
        yearly = Interval(Denomination.YEARS, 1)

        assert next_tick(datetime(2024, 2, 29), yearly) == datetime(2025, 2, 28)

    def test_negative_counts_step_backwards(self) -> None:
        quarter_hour = Interval(Denomination.MINUTES, 15)
        moment = datetime(2024, 1, 1, 0, 0)

        assert add_intervals(moment, quarter_hour, -2) == datetime(2023, 12, 31, 23, 30)
        assert previous_tick(moment, quarter_hour) == datetime(2023, 12, 31, 23, 45)

    def test_fixed_steps_match_timedeltas(self) -> None:
        moment = datetime(2024, 3, 10, 12, 0)

        assert add_intervals(moment, Interval(Denomination.HOURS, 6), 3) == moment + timedelta(hours=18)
        assert add_intervals(moment, Interval(Denomination.SECONDS, 10)) == moment + timedelta(seconds=10)


def test_to_naive_utc_converts_offsets() -> None:
    aware = datetime(2024, 1, 1, 5, 0, tzinfo=timezone(timedelta(hours=5)))

    assert to_naive_utc(aware) == datetime(2024, 1, 1, 0, 0)
    assert to_naive_utc(datetime(2024, 1, 1, tzinfo=UTC)).tzinfo is None
    assert to_naive_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1)
