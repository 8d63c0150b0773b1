"""Aggregate command: download data from a source into a dataset."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from pathlib import Path

import typer

from marketflow.core.config import MarketFlowConfig, resolve_api_key
from marketflow.core.logging import get_logger
from marketflow.core.services.intervals import format_interval
from marketflow.core.services.scheduler import (
    AggregationMode,
    AggregationRequest,
    AggregationResult,
    run_aggregation,
)
from marketflow.core.sources import CoinApiClient, CoinApiConfig, CoinApiSource, DataSource
from marketflow.core.storage import DatasetStorage, DuckDBDatasetStorage

from .utils import (
    get_config,
    parse_interval_option,
    parse_time_option,
    prepare_output,
    reporting_errors,
)

logger = get_logger("marketflow.cli.aggregate")

SUMMARY_COLUMNS = [
    "symbol",
    "interval",
    "mode",
    "pages",
    "points_received",
    "points_stored",
    "skipped_gaps",
    "dataset",
]


def register(app: typer.Typer) -> None:
    app.command("aggregate", help="Download market data from a source into a dataset.")(aggregate_command)


def get_source(config: MarketFlowConfig) -> DataSource:
    """Factory hook for obtaining the configured data source."""

    client_config = CoinApiConfig(
        base_url=config.source.base_url,
        sandbox=config.source.sandbox,
        timeout=config.source.timeout,
    )
    return CoinApiSource(CoinApiClient(client_config))


def get_storage() -> DatasetStorage:
    return DuckDBDatasetStorage()


def aggregate_command(
    ctx: typer.Context,
    exchange: str = typer.Option(..., "--exchange", "-E", help="Exchange to download from."),
    base: str = typer.Option(..., "--base", "-B", help="Base (traded) asset."),
    quote: str = typer.Option(..., "--quote", "-Q", help="Quote (held) asset."),
    interval: str = typer.Option(..., "--interval", "-t", help="Interval such as 1DAY, 15MIN or 4h."),
    limit: int | None = typer.Option(None, "--limit", "-l", help="How many entries to download at most."),
    mode: AggregationMode = typer.Option(
        AggregationMode.APPEND, "--mode", "-m", case_sensitive=False, help="append or fill."
    ),
    start: str | None = typer.Option(None, "--start", "-s", help="Start time (ISO-8601, UTC)."),
    end: str | None = typer.Option(None, "--end", "-e", help="End time (ISO-8601, UTC)."),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        "-a",
        help="API key for the source. Read from the environment when omitted.",
    ),
    dataset: Path | None = typer.Option(None, "--dataset", "-d", help="Dataset file or directory."),
    timeout: float | None = typer.Option(None, "--timeout", help="Seconds before the download is abandoned."),
    persist_partial: bool = typer.Option(
        False, "--persist-partial", help="Store what was merged before a failure."
    ),
) -> None:
    """Download data for one symbol and merge it into the dataset."""

    config = get_config(ctx)
    resolved_interval = parse_interval_option(interval, "--interval")
    start_time = parse_time_option(start, "--start")
    end_time = parse_time_option(end, "--end")
    path = dataset or Path(config.aggregation.default_dataset_path)
    effective_timeout = timeout if timeout is not None else config.aggregation.timeout_seconds

    with reporting_errors():
        key = api_key or resolve_api_key(config.source.name)
        request = AggregationRequest(
            exchange=exchange,
            base=base,
            quote=quote,
            interval=resolved_interval,
            mode=mode,
            start=start_time,
            end=end_time,
            limit=limit if limit is not None else config.aggregation.default_entry_limit,
        )
        source = get_source(config)
        result = asyncio.run(
            _aggregate(
                path,
                source,
                key,
                request,
                timeout=effective_timeout if effective_timeout > 0 else None,
                max_page_size=config.aggregation.max_page_size,
                persist_partial=persist_partial,
            )
        )
        logger.info(f"Aggregated {result.points_received} points for {result.symbol} in {result.pages} pages.")

    formatter, stream, stack, _ = prepare_output(ctx)
    try:
        formatter.render([_summary(result, request, path)], stream=stream, columns=SUMMARY_COLUMNS)
    finally:
        stack.close()


async def _aggregate(
    path: Path,
    source: DataSource,
    api_key: str,
    request: AggregationRequest,
    *,
    timeout: float | None,
    max_page_size: int,
    persist_partial: bool,
) -> AggregationResult:
    async with AsyncExitStack() as stack:
        if hasattr(source, "__aenter__"):
            await stack.enter_async_context(source)
        return await run_aggregation(
            path,
            get_storage(),
            source,
            api_key,
            request,
            timeout=timeout,
            max_page_size=max_page_size,
            persist_partial=persist_partial,
        )


def _summary(result: AggregationResult, request: AggregationRequest, path: Path) -> dict[str, object]:
    flow = result.dataset.symbol_flow(result.symbol, request.interval)
    return {
        "symbol": result.symbol,
        "interval": format_interval(request.interval),
        "mode": request.mode.value,
        "pages": result.pages,
        "points_received": result.points_received,
        "points_stored": len(flow) if flow is not None else 0,
        "skipped_gaps": len(result.skipped_gaps),
        "dataset": str(path),
    }


__all__ = ["aggregate_command", "get_source", "get_storage", "register"]
