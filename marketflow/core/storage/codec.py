"""Persist one dataset per DuckDB file."""

from __future__ import annotations

import os
import uuid
from collections.abc import Iterator
from itertools import groupby
from pathlib import Path
from typing import Protocol, runtime_checkable

import duckdb
import pandas as pd
from duckdb import DuckDBPyConnection

from marketflow.core.exceptions import StorageError
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.dataset import Dataset
from marketflow.core.models.index import SymbolMetadata, SymbolType, TermIndex
from marketflow.core.models.interval import Denomination, Interval
from marketflow.core.models.market import MarketFlow, MarketInstant, SymbolIntervalGroup
from marketflow.core.storage.factory import DuckDBFactory, DuckDBFactoryConfig
from marketflow.core.storage.schema import (
    FLOWS_TABLE,
    FORMAT_VERSION,
    METADATA_TABLE,
    POINTS_TABLE,
    SYMBOLS_TABLE,
    TERMS_TABLE,
    ensure_dataset_tables,
)

STORABLE_EXTENSIONS = frozenset({"", ".dat", ".bin", ".duckdb"})
DIRECTORY_FILE_EXTENSION = ".dat"
LOCK_SUFFIX = ".lock"


@runtime_checkable
class DatasetStorage(Protocol):
    """Reads and writes whole datasets at a path."""

    def can_store_to(self, path: Path) -> bool: ...

    def store(self, dataset: Dataset, path: Path) -> bool: ...

    def extract(self, path: Path) -> Dataset | None: ...


class DuckDBDatasetStorage:
    """Stores a dataset as a DuckDB database file.

    A directory path stands for ``<dir>/<dirname>.dat``. Writes go to a
    temporary file that replaces the target once complete, and a lock file
    next to the target keeps a second writer from starting.
    """

    def __init__(self, *, diagnostics: Diagnostics | None = None) -> None:
        self._diagnostics = diagnostics or get_logger("marketflow.storage")

    @staticmethod
    def resolve_path(path: Path) -> Path:
        path = Path(path)
        if path.is_dir():
            return path / f"{path.name}{DIRECTORY_FILE_EXTENSION}"
        return path

    def can_store_to(self, path: Path) -> bool:
        path = Path(path)
        if path.exists() and not (path.is_file() or path.is_dir()):
            return False

        target = self.resolve_path(path)
        if target.exists() and not target.is_file():
            return False
        if target.suffix.lower() not in STORABLE_EXTENSIONS:
            return False
        if target.exists():
            return os.access(target, os.W_OK)
        return target.parent.is_dir() and os.access(target.parent, os.W_OK)

    def store(self, dataset: Dataset, path: Path) -> bool:
        """Write ``dataset`` to ``path``; returns ``False`` when the write did not happen."""

        if not self.can_store_to(path):
            self._diagnostics.error(f"Cannot store a dataset at {path}.")
            return False

        target = self.resolve_path(path)
        lock = target.with_name(target.name + LOCK_SUFFIX)
        try:
            descriptor = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            self._diagnostics.error(f"Another writer holds the lock {lock}; the dataset was not stored.")
            return False
        except OSError as exc:
            self._diagnostics.error(f"Unable to lock {target}: {exc}")
            return False

        temporary = target.with_name(f".{target.name}.{uuid.uuid4().hex}.tmp")
        try:
            os.close(descriptor)
            with self._factory(temporary).connection() as conn:
                self._write(conn, dataset)
            os.replace(temporary, target)
        except (duckdb.Error, OSError) as exc:
            self._diagnostics.error(f"Unable to store the dataset at {target}: {exc}")
            return False
        finally:
            for leftover in (temporary, temporary.with_name(temporary.name + ".wal"), lock):
                leftover.unlink(missing_ok=True)

        self._diagnostics.info(f"Stored {len(dataset.symbols)} symbols at {target}.")
        return True

    def extract(self, path: Path) -> Dataset | None:
        """Read the dataset at ``path``, or ``None`` when nothing is stored there.

        Raises:
            StorageError: the file is not a dataset or uses an unknown format version.
        """

        source = self.resolve_path(path)
        if not source.is_file():
            return None

        try:
            with self._factory(source, read_only=True).connection() as conn:
                return self._read(conn, source)
        except duckdb.Error as exc:
            raise StorageError(f"Unable to read the dataset at {source}: {exc}", path=str(source)) from exc

    @staticmethod
    def _factory(database: Path, *, read_only: bool = False) -> DuckDBFactory:
        return DuckDBFactory(DuckDBFactoryConfig.for_dataset(database, read_only=read_only))

    def _write(self, conn: DuckDBPyConnection, dataset: Dataset) -> None:
        ensure_dataset_tables(conn)
        conn.executemany(
            METADATA_TABLE.insert_sql(),
            [["format_version", str(FORMAT_VERSION)], ["generator", "marketflow"]],
        )

        terms = [[index, name] for name, index in sorted(dataset.index.terms.items(), key=lambda item: item[1])]
        if terms:
            conn.executemany(TERMS_TABLE.insert_sql(), terms)

        symbols = [
            [index, metadata.held_asset, metadata.traded_asset, metadata.exchange, metadata.type.value]
            for index, metadata in sorted(dataset.index.symbols.items())
        ]
        if symbols:
            conn.executemany(SYMBOLS_TABLE.insert_sql(), symbols)

        flows: list[list[object]] = []
        points: list[tuple[object, ...]] = []
        for flow_id, (symbol_index, flow) in enumerate(self._flows(dataset)):
            flows.append(
                [flow_id, symbol_index, flow.interval.denomination.code, flow.interval.length, flow.start, flow.end]
            )
            points.extend(
                (flow_id, point.time, point.open, point.high, point.low, point.close, point.volume)
                for point in flow.points
                if point.time is not None
            )
        if flows:
            conn.executemany(FLOWS_TABLE.insert_sql(), flows)
        if points:
            frame = pd.DataFrame.from_records(points, columns=POINTS_TABLE.column_names)
            conn.register("points_frame", frame)
            columns = ", ".join(POINTS_TABLE.column_names)
            conn.execute(f"INSERT INTO {POINTS_TABLE.name} ({columns}) SELECT {columns} FROM points_frame")
            conn.unregister("points_frame")

    def _read(self, conn: DuckDBPyConnection, source: Path) -> Dataset:
        version = self._format_version(conn, source)
        if version != FORMAT_VERSION:
            raise StorageError(
                f"The dataset at {source} uses format version {version}; only {FORMAT_VERSION} is supported.",
                path=str(source),
                details={"format_version": version},
            )

        terms = {name: index for index, name in conn.execute(TERMS_TABLE.select_sql(["term_index"])).fetchall()}
        metadata: dict[int, SymbolMetadata] = {}
        for index, held, traded, exchange, symbol_type in conn.execute(
            SYMBOLS_TABLE.select_sql(["symbol_index"])
        ).fetchall():
            try:
                resolved_type = SymbolType.from_text(symbol_type)
            except ValueError as exc:
                raise StorageError(
                    f"Symbol #{index} in {source} has an unknown type {symbol_type!r}.", path=str(source)
                ) from exc
            metadata[index] = SymbolMetadata(held_asset=held, traded_asset=traded, exchange=exchange, type=resolved_type)

        points_by_flow: dict[int, tuple[MarketInstant, ...]] = {}
        rows = conn.execute(POINTS_TABLE.select_sql(["flow_id", "ts"])).fetchall()
        for flow_id, group in groupby(rows, key=lambda row: row[0]):
            points_by_flow[flow_id] = tuple(
                MarketInstant(time=ts, open=open_, high=high, low=low, close=close, volume=volume)
                for _, ts, open_, high, low, close, volume in group
            )

        groups: dict[int, dict[Interval, MarketFlow]] = {index: {} for index in metadata}
        for flow_id, symbol_index, denomination, length, start, end in conn.execute(
            FLOWS_TABLE.select_sql(["flow_id"])
        ).fetchall():
            interval = Interval(Denomination(denomination), length)
            groups.setdefault(symbol_index, {})[interval] = MarketFlow(
                interval=interval,
                start=start,
                end=end,
                points=points_by_flow.get(flow_id, ()),
            )

        return Dataset(
            index=TermIndex(terms=terms, symbols=metadata),
            symbols={index: SymbolIntervalGroup(dict(sorted(flows.items()))) for index, flows in sorted(groups.items())},
        )

    @staticmethod
    def _format_version(conn: DuckDBPyConnection, source: Path) -> int:
        tables = {row[0] for row in conn.execute("SELECT table_name FROM information_schema.tables").fetchall()}
        if METADATA_TABLE.name not in tables:
            raise StorageError(f"{source} is not a marketflow dataset.", path=str(source))

        row = conn.execute(
            f"SELECT value FROM {METADATA_TABLE.name} WHERE setting = ?", ["format_version"]
        ).fetchone()
        try:
            return int(row[0]) if row is not None else -1
        except ValueError:
            return -1

    @staticmethod
    def _flows(dataset: Dataset) -> Iterator[tuple[int, MarketFlow]]:
        for symbol_index in sorted(dataset.symbols):
            group = dataset.symbols[symbol_index]
            for interval in group.intervals():
                yield symbol_index, group.flows[interval]


__all__ = ["DatasetStorage", "DuckDBDatasetStorage", "STORABLE_EXTENSIONS"]
