"""Ingest command: merge a delimited OHLCV file into a dataset."""

from __future__ import annotations

from pathlib import Path

import typer

from marketflow.core.ingestion import TabularStreamMetadata, get_preset, run_ingest
from marketflow.core.models.market import TimeRange
from marketflow.core.services.intervals import format_interval

from .aggregate import get_storage
from .utils import get_config, parse_interval_option, parse_time_option, prepare_output, reporting_errors

SUMMARY_COLUMNS = ["symbol", "interval", "rows", "batches", "points_stored", "dataset"]


def register(app: typer.Typer) -> None:
    app.command("ingest", help="Merge historical data from a delimited file into a dataset.")(ingest_command)


def ingest_command(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="File to ingest."),
    symbol: str = typer.Option(..., "--symbol", help="Symbol name to store the data under."),
    base: str = typer.Option(..., "--base", help="Base (traded) asset."),
    quote: str = typer.Option(..., "--quote", help="Quote (held) asset."),
    exchange: str = typer.Option(..., "--exchange", help="Exchange the data comes from."),
    interval: str = typer.Option(..., "--interval", help="Interval of the rows, such as 1DAY or 1h."),
    source_symbol: str | None = typer.Option(
        None, "--source-symbol", help="Only ingest rows whose symbol column matches this value."
    ),
    preset: str | None = typer.Option(
        None, "--preset", help="File layout (cryptodatadownload or cryptotick). Detected when omitted."
    ),
    dataset: Path | None = typer.Option(None, "--dataset", "-d", help="Dataset file or directory."),
    limit: int | None = typer.Option(None, "--limit", "-l", min=1, help="How many rows to ingest at most."),
    start: str | None = typer.Option(None, "--start", "-s", help="Skip rows before this time (ISO-8601, UTC)."),
    end: str | None = typer.Option(None, "--end", "-e", help="Skip rows after this time (ISO-8601, UTC)."),
) -> None:
    """Read the rows of PATH and merge them into the dataset."""

    config = get_config(ctx)
    resolved_interval = parse_interval_option(interval, "--interval")
    time_range = TimeRange(parse_time_option(start, "--start"), parse_time_option(end, "--end"))
    target = dataset or Path(config.aggregation.default_dataset_path)

    with reporting_errors():
        metadata: TabularStreamMetadata | None = get_preset(preset) if preset else None
        result = run_ingest(
            path,
            target,
            get_storage(),
            symbol=symbol,
            base_asset=base,
            quote_asset=quote,
            exchange=exchange,
            interval=resolved_interval,
            metadata=metadata,
            source_symbol=source_symbol,
            entry_limit=limit,
            time_range=time_range,
            batch_size=config.aggregation.ingest_batch_size,
        )

    flow = result.dataset.symbol_flow(symbol, resolved_interval)
    row = {
        "symbol": symbol,
        "interval": format_interval(resolved_interval),
        "rows": result.rows,
        "batches": result.batches,
        "points_stored": len(flow) if flow is not None else 0,
        "dataset": str(target),
    }
    formatter, stream, stack, _ = prepare_output(ctx)
    try:
        formatter.render([row], stream=stream, columns=SUMMARY_COLUMNS)
    finally:
        stack.close()


__all__ = ["ingest_command", "register"]
