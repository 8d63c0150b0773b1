"""View command: summarize the contents of a dataset."""

from __future__ import annotations

from pathlib import Path

import typer

from marketflow.core.exceptions import StorageError
from marketflow.core.models.dataset import Dataset
from marketflow.core.services.intervals import describe_interval, format_interval

from .aggregate import get_storage
from .utils import prepare_output, reporting_errors

FLOW_COLUMNS = ["symbol", "exchange", "base", "quote", "interval", "start", "end", "points", "first", "last"]
INDEX_COLUMNS = ["index", "term", "role"]
POINT_COLUMNS = ["symbol", "interval", "time", "open", "high", "low", "close", "volume"]


def register(app: typer.Typer) -> None:
    app.command("view", help="Show what a dataset contains.")(view_command)


def view_command(
    ctx: typer.Context,
    dataset: Path = typer.Argument(..., help="Dataset file or directory to view."),
    index: bool = typer.Option(False, "--index", help="List the term index instead of the flows."),
    points: int = typer.Option(0, "--points", "-n", min=0, help="Also list the last N points of every flow."),
) -> None:
    """Summarize DATASET."""

    with reporting_errors():
        stored = get_storage().extract(dataset)
        if stored is None:
            raise StorageError(f"No dataset was found at {dataset}.", path=str(dataset))

    formatter, stream, stack, _ = prepare_output(ctx)
    try:
        if index:
            formatter.render(index_rows(stored), stream=stream, columns=INDEX_COLUMNS, title="Terms")
            return
        formatter.render(flow_rows(stored), stream=stream, columns=FLOW_COLUMNS, title="Flows")
        if points:
            formatter.render(point_rows(stored, points), stream=stream, columns=POINT_COLUMNS, title="Points")
    finally:
        stack.close()


def flow_rows(dataset: Dataset) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for symbol_index in sorted(dataset.symbols):
        name = dataset.index.name_of(symbol_index) or f"#{symbol_index}"
        metadata = dataset.index.symbols.get(symbol_index)
        group = dataset.symbols[symbol_index]
        for interval in group.intervals():
            flow = group.flows[interval]
            rows.append(
                {
                    "symbol": name,
                    "exchange": dataset.index.name_of(metadata.exchange) if metadata else None,
                    "base": dataset.index.name_of(metadata.traded_asset) if metadata else None,
                    "quote": dataset.index.name_of(metadata.held_asset) if metadata else None,
                    "interval": describe_interval(interval),
                    "start": flow.start,
                    "end": flow.end,
                    "points": len(flow),
                    "first": flow.first_time,
                    "last": flow.last_time,
                }
            )
    return rows


def index_rows(dataset: Dataset) -> list[dict[str, object]]:
    roles: dict[int, set[str]] = {}
    for symbol_index, metadata in dataset.index.symbols.items():
        roles.setdefault(symbol_index, set()).add("symbol")
        roles.setdefault(metadata.traded_asset, set()).add("base")
        roles.setdefault(metadata.held_asset, set()).add("quote")
        roles.setdefault(metadata.exchange, set()).add("exchange")

    return [
        {"index": term_index, "term": name, "role": ", ".join(sorted(roles.get(term_index, ()))) or None}
        for name, term_index in sorted(dataset.index.terms.items(), key=lambda item: item[1])
    ]


def point_rows(dataset: Dataset, count: int) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for name, flow in dataset.iter_flows():
        for point in flow.points[-count:]:
            rows.append(
                {
                    "symbol": name,
                    "interval": format_interval(flow.interval),
                    "time": point.time,
                    "open": point.open,
                    "high": point.high,
                    "low": point.low,
                    "close": point.close,
                    "volume": point.volume,
                }
            )
    return rows


__all__ = ["flow_rows", "index_rows", "point_rows", "register", "view_command"]
