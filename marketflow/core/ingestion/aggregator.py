"""Merge rows read from delimited files into a dataset."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from itertools import islice
from pathlib import Path
from typing import TYPE_CHECKING

from marketflow.core.exceptions import DataValidationError, StorageError
from marketflow.core.ingestion.metadata import TabularStreamMetadata, detect_metadata
from marketflow.core.ingestion.reader import TimestampedOhlcv, read_historical
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.dataset import Dataset
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import TimeRange
from marketflow.core.services.flows import covering_bounds
from marketflow.core.services.intervals import coerce_interval
from marketflow.core.services.merge import merge
from marketflow.core.services.terms import ReconciliationPolicy

if TYPE_CHECKING:
    from marketflow.core.storage.codec import DatasetStorage

DEFAULT_BATCH_SIZE = 50_000


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one ingestion."""

    dataset: Dataset
    rows: int
    batches: int


def ingest_rows(
    base: Dataset | None,
    rows: Iterable[TimestampedOhlcv],
    *,
    symbol: str,
    base_asset: str,
    quote_asset: str,
    exchange: str,
    interval: Interval | str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    time_range: TimeRange | None = None,
    policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
    diagnostics: Diagnostics | None = None,
) -> IngestResult:
    """Merge ``rows`` into ``base`` ``batch_size`` rows at a time.

    Each batch widens the declared bounds of the flow just enough to keep
    covering what was there and the rows it adds.
    """

    if batch_size <= 0:
        raise DataValidationError("batch_size must be positive", details={"batch_size": batch_size})
    resolved = coerce_interval(interval)
    logger = diagnostics or get_logger("marketflow.ingestion")
    dataset = base or Dataset.empty()
    total = 0
    batches = 0

    iterator = iter(rows)
    while batch := list(islice(iterator, batch_size)):
        existing = dataset.symbol_flow(symbol, resolved)
        start, end = covering_bounds(existing, [row.time for row in batch], time_range)
        dataset = merge(
            dataset,
            symbol=symbol,
            base_asset=base_asset,
            quote_asset=quote_asset,
            exchange=exchange,
            interval=resolved,
            points=[row.to_instant() for row in batch],
            declared_start=start,
            declared_end=end,
            policy=policy,
            diagnostics=logger,
        )
        total += len(batch)
        batches += 1
        logger.info(f"Merged a batch of {len(batch)} rows for {symbol} ({total} so far).")

    if total == 0:
        logger.warning(f"No rows were ingested for {symbol}.")
    return IngestResult(dataset=dataset, rows=total, batches=batches)


def run_ingest(
    source_path: Path,
    dataset_path: Path,
    storage: DatasetStorage,
    *,
    symbol: str,
    base_asset: str,
    quote_asset: str,
    exchange: str,
    interval: Interval | str,
    metadata: TabularStreamMetadata | None = None,
    source_symbol: str | None = None,
    entry_limit: int | None = None,
    time_range: TimeRange | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
    diagnostics: Diagnostics | None = None,
) -> IngestResult:
    """Read ``source_path``, merge it into the dataset at ``dataset_path`` and store the result.

    ``source_symbol`` keeps only the rows whose symbol column equals it
    (case-insensitively); without it every row is ingested as ``symbol``.
    """

    if not storage.can_store_to(dataset_path):
        raise StorageError(
            f"The path specified is not a valid path to store data in: {dataset_path}.", path=str(dataset_path)
        )

    layout = metadata or detect_metadata(source_path)
    symbol_filter = _same_symbol(source_symbol) if source_symbol else None
    base = storage.extract(dataset_path)
    rows = read_historical(
        source_path,
        layout,
        symbol_filter=symbol_filter,
        entry_limit=entry_limit,
        time_range=time_range,
    )
    result = ingest_rows(
        base,
        rows,
        symbol=symbol,
        base_asset=base_asset,
        quote_asset=quote_asset,
        exchange=exchange,
        interval=interval,
        batch_size=batch_size,
        time_range=time_range,
        policy=policy,
        diagnostics=diagnostics,
    )

    if result.rows and not storage.store(result.dataset, dataset_path):
        raise StorageError("Storage of the new dataset failed.", path=str(dataset_path))
    return result


def _same_symbol(expected: str) -> Callable[[str], bool]:
    wanted = expected.casefold()
    return lambda value: value.casefold() == wanted


__all__ = ["DEFAULT_BATCH_SIZE", "IngestResult", "ingest_rows", "run_ingest"]
