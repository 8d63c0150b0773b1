"""Lazy reader of historical OHLCV rows from delimited text."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO

import pandas as pd

from marketflow.core.exceptions import IngestionError
from marketflow.core.ingestion.metadata import TabularStreamMetadata
from marketflow.core.models.market import MarketInstant, TimeRange

DEFAULT_CHUNK_SIZE = 10_000

_PRICE_FIELDS = ("open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class TimestampedOhlcv:
    """One row of a historical OHLCV file."""

    time: datetime
    symbol: str | None
    open: float
    high: float
    low: float
    close: float
    volume: float

    def to_instant(self) -> MarketInstant:
        return MarketInstant(
            time=self.time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


def read_historical(
    source: str | Path | IO[str],
    metadata: TabularStreamMetadata,
    *,
    symbol_filter: Callable[[str], bool] | None = None,
    entry_limit: int | None = None,
    time_range: TimeRange | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[TimestampedOhlcv]:
    """Yield the rows of ``source`` that fall in ``time_range`` and pass ``symbol_filter``.

    Nothing is read until the first row is requested, and the file is read in
    chunks of ``chunk_size`` rows. Calling this again on the same path starts
    over from the first row.

    Raises:
        IngestionError: the header lacks a required column or a row is malformed.
    """

    if entry_limit is not None and entry_limit <= 0:
        return
    window = time_range or TimeRange()
    options = {
        "sep": metadata.delimiter,
        "engine": "c" if metadata.delimiter else "python",
        "skiprows": metadata.skipped_rows,
        "dtype": str,
        "keep_default_na": False,
        "skipinitialspace": True,
        "chunksize": chunk_size,
    }

    try:
        reader = pd.read_csv(source, **options)
    except pd.errors.EmptyDataError as exc:
        raise IngestionError("The data stream has no header row.", details={"source": str(source)}) from exc
    except (OSError, pd.errors.ParserError) as exc:
        raise IngestionError(f"Unable to read the data stream: {exc}", details={"source": str(source)}) from exc

    emitted = 0
    row_number = metadata.skipped_rows + 1
    with reader:
        columns: dict[str, str] | None = None
        try:
            for chunk in reader:
                if columns is None:
                    columns = metadata.columns.resolve(list(chunk.columns))
                for record in chunk.to_dict("records"):
                    row_number += 1
                    row = _parse_row(record, columns, metadata, row_number)
                    if row.time not in window:
                        continue
                    if symbol_filter is not None and not symbol_filter(row.symbol or ""):
                        continue
                    yield row
                    emitted += 1
                    if entry_limit is not None and emitted >= entry_limit:
                        return
        except pd.errors.ParserError as exc:
            raise IngestionError(
                f"Malformed data near row {row_number}: {exc}", details={"row": row_number}
            ) from exc


def _parse_row(
    record: dict[str, str],
    columns: dict[str, str],
    metadata: TabularStreamMetadata,
    row_number: int,
) -> TimestampedOhlcv:
    try:
        time = metadata.time_format.parse(str(record[columns["time"]]))
    except IngestionError as exc:
        raise IngestionError(f"Row {row_number}: {exc.message}", details={**exc.details, "row": row_number}) from exc

    values: dict[str, float] = {}
    for name in _PRICE_FIELDS:
        raw = str(record[columns[name]]).strip()
        try:
            values[name] = float(raw)
        except ValueError as exc:
            raise IngestionError(
                f"Row {row_number}: the {name} value '{raw}' is not a number.",
                details={"row": row_number, "column": columns[name]},
            ) from exc

    symbol = str(record[columns["symbol"]]).strip() if "symbol" in columns else None
    return TimestampedOhlcv(time=time, symbol=symbol, **values)


__all__ = ["DEFAULT_CHUNK_SIZE", "TimestampedOhlcv", "read_historical"]
