"""Download scheduling in append and fill modes."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from marketflow.core.exceptions import (
    AggregationError,
    AggregationTimeoutError,
    DataValidationError,
    InvalidRangeError,
    SourceError,
    StorageError,
    UnsupportedSymbolTypeError,
)
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.dataset import Dataset
from marketflow.core.models.index import SymbolType
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import MarketFlow, TimeRange
from marketflow.core.services.flows import FlowBuilder, covering_bounds
from marketflow.core.services.intervals import format_interval, next_tick
from marketflow.core.services.merge import merge
from marketflow.core.services.terms import ReconciliationPolicy
from marketflow.core.sources.base import DataSource, HistoricalPoint, SymbolResolution

if TYPE_CHECKING:
    from marketflow.core.storage.codec import DatasetStorage

UNIX_EPOCH = datetime(1970, 1, 1)
DEFAULT_MAX_PAGE_SIZE = 10_000

T = TypeVar("T")


class AggregationMode(str, Enum):
    """下载模式枚举."""

    APPEND = "append"
    FILL = "fill"


@dataclass(frozen=True)
class AggregationRequest:
    """What to download: a symbol by its assets and exchange, an interval and a range."""

    exchange: str
    base: str
    quote: str
    interval: Interval
    mode: AggregationMode = AggregationMode.APPEND
    start: datetime | None = None
    end: datetime | None = None
    limit: int = 100

    def __post_init__(self) -> None:
        if self.limit <= 0:
            raise DataValidationError(
                f"The entry limit must be positive, got {self.limit}.", details={"limit": self.limit}
            )
        if self.start is not None and self.end is not None and self.start > self.end:
            raise InvalidRangeError(
                f"The start time {self.start} comes after the end time {self.end}.",
                start=self.start,
                end=self.end,
            )

    @property
    def label(self) -> str:
        return f"{self.exchange}:{self.base}/{self.quote}"

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(self.start, self.end)


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of one aggregation."""

    dataset: Dataset
    symbol: str
    pages: int
    points_received: int
    skipped_gaps: tuple[TimeRange, ...] = ()


@dataclass
class _Progress:
    dataset: Dataset
    symbol: str
    pages: int = 0
    points_received: int = 0
    budget: int = 0
    skipped_gaps: list[TimeRange] = field(default_factory=list)


def round_up(value: int, factor: int) -> int:
    """Round ``value`` up to a multiple of ``factor``."""

    if factor <= 1:
        return value
    return -(-value // factor) * factor


class DownloadScheduler:
    """Drives a data source page by page and merges every page immediately.

    Pages are fetched strictly one after another: the merge of one page
    completes before the range of the next is chosen.
    """

    def __init__(
        self,
        source: DataSource,
        api_key: str,
        *,
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
        policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        if max_page_size <= 0:
            raise DataValidationError("max_page_size must be positive", details={"max_page_size": max_page_size})
        self.source = source
        self._api_key = api_key
        self._max_page_size = max_page_size
        self._policy = policy
        self._diagnostics = diagnostics or get_logger("marketflow.scheduler")

    def request_size(self, budget: int) -> int:
        """Entries to ask for when ``budget`` entries remain."""

        return round_up(min(budget, self._max_page_size), self.source.limit_request_factor)

    async def aggregate(
        self,
        base: Dataset | None,
        request: AggregationRequest,
        *,
        timeout: float | None = None,
    ) -> AggregationResult:
        """Download and merge data for ``request`` on top of ``base``.

        Raises:
            AggregationError: the source failed; carries the dataset merged so far.
            AggregationTimeoutError: ``timeout`` seconds elapsed first.
        """

        progress = _Progress(dataset=base or Dataset.empty(), symbol=request.label)
        if timeout is None:
            return await self._run(progress, request)
        try:
            return await asyncio.wait_for(self._run(progress, request), timeout)
        except TimeoutError as exc:
            raise AggregationTimeoutError(
                f"Aggregation of {progress.symbol} did not finish within {timeout} seconds.",
                progress.symbol,
                format_interval(request.interval),
                timeout,
                request.start,
                request.end,
                partial_dataset=progress.dataset,
            ) from exc

    async def _run(self, progress: _Progress, request: AggregationRequest) -> AggregationResult:
        resolution = await self._guarded(
            progress,
            request,
            request.start,
            request.end,
            self.source.resolve_symbol(self._api_key, request.exchange, request.base, request.quote),
        )
        if resolution.symbol_type is not SymbolType.SPOT:
            raise UnsupportedSymbolTypeError(
                f"Symbol {resolution.symbol_id} is a {resolution.symbol_type.value} symbol; only SPOT is supported.",
                symbol=resolution.symbol_id,
                symbol_type=resolution.symbol_type.value,
            )
        progress.symbol = resolution.symbol_id
        notation = self.source.to_source_notation(request.interval)
        progress.budget = round_up(request.limit, self.source.limit_request_factor)

        self._diagnostics.info(
            f"Aggregating {resolution.symbol_id} at {notation} in {request.mode.value} mode "
            f"with a budget of {progress.budget} entries."
        )

        if request.mode is AggregationMode.FILL:
            await self._fill(progress, request, resolution, notation)
            flow = self._current_flow(progress, request, resolution)
            cursor = next_tick(flow.last_time, request.interval) if flow is not None and flow.last_time else None
            if cursor is not None and request.start is not None:
                cursor = max(cursor, request.start)
            await self._append(progress, request, resolution, notation, cursor or request.start or UNIX_EPOCH)
        else:
            flow = self._current_flow(progress, request, resolution)
            last_time = flow.last_time if flow is not None else None
            candidates = [moment for moment in (last_time, request.start) if moment is not None]
            await self._append(progress, request, resolution, notation, max(candidates) if candidates else UNIX_EPOCH)

        return AggregationResult(
            dataset=progress.dataset,
            symbol=resolution.symbol_id,
            pages=progress.pages,
            points_received=progress.points_received,
            skipped_gaps=tuple(progress.skipped_gaps),
        )

    async def _fill(
        self,
        progress: _Progress,
        request: AggregationRequest,
        resolution: SymbolResolution,
        notation: str,
    ) -> None:
        search_from = request.start
        while progress.budget > 0:
            builder = FlowBuilder(request.interval, self._current_flow(progress, request, resolution))
            gap = builder.find_gap(search_from, request.end)
            if gap is None:
                return

            requested = self.request_size(progress.budget)
            points = await self._fetch(progress, request, resolution, notation, gap.start, gap.end, requested)
            if not points:
                self._diagnostics.warning(f"The source has no data for the gap {gap}; skipping it.")
                progress.skipped_gaps.append(gap)
                search_from = next_tick(gap.end, request.interval)

    async def _append(
        self,
        progress: _Progress,
        request: AggregationRequest,
        resolution: SymbolResolution,
        notation: str,
        cursor: datetime,
    ) -> None:
        while progress.budget > 0:
            if request.end is not None and cursor > request.end:
                return

            requested = self.request_size(progress.budget)
            points = await self._fetch(progress, request, resolution, notation, cursor, request.end, requested)
            if len(points) < requested:
                return

            following = next_tick(max(point.time for point in points), request.interval)
            if following <= cursor:
                return
            cursor = following

    async def _fetch(
        self,
        progress: _Progress,
        request: AggregationRequest,
        resolution: SymbolResolution,
        notation: str,
        start: datetime,
        end: datetime | None,
        requested: int,
    ) -> list[HistoricalPoint]:
        points = await self._guarded(
            progress,
            request,
            start,
            end,
            self.source.fetch_historical(self._api_key, resolution.symbol_id, notation, start, end, requested),
        )
        progress.pages += 1
        progress.points_received += len(points)
        progress.budget -= len(points)

        if points:
            times = [point.time for point in points]
            self._diagnostics.info(
                f"{len(points)} data points were downloaded successfully between {min(times)} and {max(times)}."
            )
        progress.dataset = self._merge_page(progress.dataset, request, resolution, points)
        return points

    async def _guarded(
        self,
        progress: _Progress,
        request: AggregationRequest,
        start: datetime | None,
        end: datetime | None,
        awaitable: Awaitable[T],
    ) -> T:
        try:
            return await awaitable
        except SourceError as exc:
            raise AggregationError(
                f"Aggregation of {progress.symbol} failed: {exc.message}",
                progress.symbol,
                format_interval(request.interval),
                start,
                end,
                partial_dataset=progress.dataset,
                details={"source_error": exc.error_code},
            ) from exc

    def _merge_page(
        self,
        dataset: Dataset,
        request: AggregationRequest,
        resolution: SymbolResolution,
        points: list[HistoricalPoint],
    ) -> Dataset:
        window = request.time_range
        kept = [point.to_instant() for point in points if point.time in window]
        if len(kept) < len(points):
            self._diagnostics.debug(f"Dropped {len(points) - len(kept)} points outside {window}.")

        existing = dataset.symbol_flow(resolution.symbol_id, request.interval)
        declared_start, declared_end = covering_bounds(
            existing, [point.time for point in kept if point.time is not None], window
        )
        return merge(
            dataset,
            symbol=resolution.symbol_id,
            base_asset=resolution.base,
            quote_asset=resolution.quote,
            exchange=resolution.exchange,
            interval=request.interval,
            points=kept,
            declared_start=declared_start,
            declared_end=declared_end,
            symbol_type=resolution.symbol_type,
            policy=self._policy,
            diagnostics=self._diagnostics,
        )

    @staticmethod
    def _current_flow(
        progress: _Progress, request: AggregationRequest, resolution: SymbolResolution
    ) -> MarketFlow | None:
        return progress.dataset.symbol_flow(resolution.symbol_id, request.interval)


async def run_aggregation(
    path: Path,
    storage: DatasetStorage,
    source: DataSource,
    api_key: str,
    request: AggregationRequest,
    *,
    timeout: float | None = None,
    max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
    persist_partial: bool = False,
    policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
    diagnostics: Diagnostics | None = None,
) -> AggregationResult:
    """Load the dataset at ``path``, aggregate into it and store the result.

    With ``persist_partial`` the dataset merged before a failure is stored
    before the error is re-raised.
    """

    if not storage.can_store_to(path):
        raise StorageError(f"The path specified is not a valid path to store data in: {path}.", path=str(path))

    base = storage.extract(path)
    scheduler = DownloadScheduler(
        source,
        api_key,
        max_page_size=max_page_size,
        policy=policy,
        diagnostics=diagnostics,
    )
    try:
        result = await scheduler.aggregate(base, request, timeout=timeout)
    except AggregationError as exc:
        if persist_partial and exc.partial_dataset is not None and exc.partial_dataset != base:
            storage.store(exc.partial_dataset, path)
        raise

    if not storage.store(result.dataset, path):
        raise StorageError("Storage of the new dataset failed.", path=str(path))
    return result


__all__ = [
    "AggregationMode",
    "AggregationRequest",
    "AggregationResult",
    "DownloadScheduler",
    "UNIX_EPOCH",
    "round_up",
    "run_aggregation",
]
