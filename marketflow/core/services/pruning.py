"""Dataset pruning by symbol, interval and time range."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from marketflow.core.exceptions import FilterSpecError, InvalidIntervalError, StorageError
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.dataset import Dataset
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import TimeRange
from marketflow.core.services.intervals import parse_interval, to_naive_utc
from marketflow.core.services.merge import DatasetBuilder

if TYPE_CHECKING:
    from marketflow.core.storage.codec import DatasetStorage

VALUE_SPEC_FORMAT = "[Symbol|Interval|Time]:<value>"

_KIND_ALIASES = {
    "s": "symbol",
    "symbol": "symbol",
    "i": "interval",
    "interval": "interval",
    "t": "time",
    "time": "time",
}


class DatasetFilter:
    """Decides which symbols, intervals and times a filter covers."""

    def matches_symbol(self, symbol: str) -> bool:
        raise NotImplementedError

    def matches_interval(self, interval: Interval) -> bool:
        raise NotImplementedError

    def matches_time(self, moment: datetime) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class _ConstantFilter(DatasetFilter):
    matches: bool

    def matches_symbol(self, symbol: str) -> bool:
        return self.matches

    def matches_interval(self, interval: Interval) -> bool:
        return self.matches

    def matches_time(self, moment: datetime) -> bool:
        return self.matches


ALL: DatasetFilter = _ConstantFilter(True)
NONE: DatasetFilter = _ConstantFilter(False)


@dataclass(frozen=True)
class ConstrainedFilter(DatasetFilter):
    """A filter listing symbols, intervals and time ranges.

    A category with no entries matches everything when
    ``match_unconstrained`` is set and nothing otherwise, so that
    ``-I Symbol:X`` keeps every interval of X while ``-E Symbol:X`` leaves
    the other symbols alone.
    """

    symbols: frozenset[str] = frozenset()
    intervals: frozenset[Interval] = frozenset()
    time_ranges: tuple[TimeRange, ...] = ()
    match_unconstrained: bool = True

    def matches_symbol(self, symbol: str) -> bool:
        if not self.symbols:
            return self.match_unconstrained
        return symbol in self.symbols

    def matches_interval(self, interval: Interval) -> bool:
        if not self.intervals:
            return self.match_unconstrained
        return interval in self.intervals

    def matches_time(self, moment: datetime) -> bool:
        if not self.time_ranges:
            return self.match_unconstrained
        return any(moment in time_range for time_range in self.time_ranges)


@dataclass(frozen=True)
class ValueSpec:
    """One parsed ``Kind:value`` filter entry."""

    kind: str
    symbol: str | None = None
    interval: Interval | None = None
    time_range: TimeRange | None = None


def parse_value_spec(text: str) -> ValueSpec:
    """Parse ``Symbol:BTCUSD``, ``I:1DAY``, ``Time:[2021-01-01,2021-02-01]`` and similar.

    Raises:
        FilterSpecError: the text is not of the form ``Kind:value``.
    """

    kind_text, separator, value = text.partition(":")
    if not separator:
        raise FilterSpecError(f"A value spec must have the format {VALUE_SPEC_FORMAT}.", spec=text)

    kind = _KIND_ALIASES.get(kind_text.strip().lower())
    if kind is None:
        if len(kind_text.strip()) == 1:
            message = f"A single character spec type must be either S, I, or T, but {kind_text} was specified."
        else:
            message = f"A spec type must be either Symbol, Interval, or Time, but {kind_text} was specified."
        raise FilterSpecError(message, spec=text)

    value = value.strip()
    if not value:
        raise FilterSpecError(f"No {kind} value was specified.", spec=text)

    if kind == "symbol":
        return ValueSpec(kind=kind, symbol=value)
    if kind == "interval":
        try:
            return ValueSpec(kind=kind, interval=parse_interval(value))
        except InvalidIntervalError as exc:
            raise FilterSpecError(exc.message, spec=text) from exc
    return ValueSpec(kind=kind, time_range=parse_time_range(value))


def parse_time_range(value: str) -> TimeRange:
    """Parse an inclusive time range: ``[X,Y]``, ``(,X]``, ``[X,)``, ``X`` or ``[X]``."""

    value = value.strip()
    if not value:
        raise FilterSpecError("No time value was specified.", spec=value)
    parts = value.split(",")
    if len(parts) > 2:
        raise FilterSpecError("Malformed time spec: only one or two range components are allowed.", spec=value)

    if len(parts) == 1:
        text = parts[0]
        if text[0] in "(]" or text[-1] in ")[":
            raise FilterSpecError("Malformed time spec: time ranges must be inclusive.", spec=value)
        moment = _parse_moment(text.removeprefix("[").removesuffix("]"), value)
        return TimeRange(moment, moment)

    left, right = parts[0].strip(), parts[1].strip()
    start = _parse_bound(left, opening=True, spec=value)
    end = _parse_bound(right, opening=False, spec=value)
    if start is not None and end is not None and start > end:
        raise FilterSpecError(f"Malformed time spec: {start} comes after {end}.", spec=value)
    return TimeRange(start, end)


def _parse_bound(text: str, *, opening: bool, spec: str) -> datetime | None:
    inclusive, exclusive = ("[", "(") if opening else ("]", ")")
    wrong_way = "]" if opening else "["
    if not text or text in {inclusive, exclusive}:
        return None

    marker = text[0] if opening else text[-1]
    if marker in {exclusive, wrong_way}:
        raise FilterSpecError("Malformed time spec: time ranges must be inclusive.", spec=spec)
    if marker == inclusive:
        text = text[1:] if opening else text[:-1]
    return _parse_moment(text, spec)


def _parse_moment(text: str, spec: str) -> datetime:
    try:
        return to_naive_utc(datetime.fromisoformat(text.strip()))
    except ValueError as exc:
        raise FilterSpecError(f"Malformed time spec: '{text}' is not an ISO-8601 time.", spec=spec) from exc


def build_filter(specs: Iterable[ValueSpec | str], inclusion: bool) -> DatasetFilter:
    """Combine value specs into one filter.

    With no specs an inclusion filter keeps everything and an exclusion
    filter removes nothing.
    """

    parsed = [spec if isinstance(spec, ValueSpec) else parse_value_spec(spec) for spec in specs]
    if not parsed:
        return ALL if inclusion else NONE

    return ConstrainedFilter(
        symbols=frozenset(spec.symbol for spec in parsed if spec.symbol is not None),
        intervals=frozenset(spec.interval for spec in parsed if spec.interval is not None),
        time_ranges=tuple(spec.time_range for spec in parsed if spec.time_range is not None),
        match_unconstrained=inclusion,
    )


def prune(
    dataset: Dataset,
    inclusion: DatasetFilter = ALL,
    exclusion: DatasetFilter = NONE,
    *,
    diagnostics: Diagnostics | None = None,
) -> Dataset:
    """Return ``dataset`` without the symbols, intervals and points the filters remove.

    A value survives when ``inclusion`` matches it and ``exclusion`` does not.
    Removing a symbol also drops its asset and exchange terms once nothing
    else refers to them. Declared flow bounds are left as they were.
    """

    logger = diagnostics or get_logger("marketflow.pruning")
    builder = DatasetBuilder(dataset, diagnostics=logger)

    def keeps_time(moment: datetime) -> bool:
        return inclusion.matches_time(moment) and not exclusion.matches_time(moment)

    for symbol_index in builder.symbol_indices():
        symbol = builder.terms.lookup(symbol_index)
        if not inclusion.matches_symbol(symbol) or exclusion.matches_symbol(symbol):
            builder.remove_symbol(symbol_index)
            logger.debug(f"Removed symbol {symbol}.")
            continue

        for interval in builder.intervals(symbol_index):
            if not inclusion.matches_interval(interval) or exclusion.matches_interval(interval):
                builder.remove_flow(symbol_index, interval)
                logger.debug(f"Removed {interval} data of {symbol}.")
                continue

            flow = builder.flow(symbol_index, interval)
            removed = flow.retain(keeps_time)
            if removed:
                builder.put_flow(symbol_index, flow)
                logger.debug(f"Removed {removed} points from {interval} data of {symbol}.")

    return builder.commit()


def run_prune(
    input_path: Path,
    output_path: Path | None,
    storage: DatasetStorage,
    inclusion: DatasetFilter = ALL,
    exclusion: DatasetFilter = NONE,
    *,
    diagnostics: Diagnostics | None = None,
) -> Dataset:
    """Prune the dataset stored at ``input_path`` into ``output_path`` (in place when omitted)."""

    target = output_path or input_path
    if not storage.can_store_to(target):
        raise StorageError(f"The path specified is not a valid path to store data in: {target}.", path=str(target))

    dataset = storage.extract(input_path)
    if dataset is None:
        raise StorageError(f"No dataset was found at {input_path}.", path=str(input_path))

    pruned = prune(dataset, inclusion, exclusion, diagnostics=diagnostics)
    if not storage.store(pruned, target):
        raise StorageError("Storage of the new dataset failed.", path=str(target))
    return pruned


__all__ = [
    "ALL",
    "ConstrainedFilter",
    "DatasetFilter",
    "NONE",
    "VALUE_SPEC_FORMAT",
    "ValueSpec",
    "build_filter",
    "parse_time_range",
    "parse_value_spec",
    "prune",
    "run_prune",
]
