"""Prune command: remove unneeded data from a dataset."""

from __future__ import annotations

from pathlib import Path

import typer

from marketflow.core.services.pruning import VALUE_SPEC_FORMAT, build_filter, run_prune

from .aggregate import get_storage
from .utils import prepare_output, reporting_errors

SUMMARY_COLUMNS = ["dataset", "symbols", "flows", "points"]


def register(app: typer.Typer) -> None:
    app.command("prune", help="Remove unneeded data from a dataset.")(prune_command)


def prune_command(
    ctx: typer.Context,
    dataset: Path = typer.Argument(..., help="Dataset file or directory to prune."),
    include: list[str] = typer.Option(
        [], "--include", "-I", help=f"Keep only matching values; {VALUE_SPEC_FORMAT}. Repeatable."
    ),
    exclude: list[str] = typer.Option(
        [], "--exclude", "-E", help=f"Remove matching values; {VALUE_SPEC_FORMAT}. Repeatable."
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Where to write the pruned dataset. Prunes in place when omitted."
    ),
) -> None:
    """Prune DATASET, keeping what the inclusion filter matches and the exclusion filter does not."""

    with reporting_errors():
        inclusion = build_filter(include, inclusion=True)
        exclusion = build_filter(exclude, inclusion=False)
        pruned = run_prune(dataset, output, get_storage(), inclusion, exclusion)

    flows = [flow for _, flow in pruned.iter_flows()]
    row = {
        "dataset": str(output or dataset),
        "symbols": len(pruned.index.symbols),
        "flows": len(flows),
        "points": sum(len(flow) for flow in flows),
    }
    formatter, stream, stack, _ = prepare_output(ctx)
    try:
        formatter.render([row], stream=stream, columns=SUMMARY_COLUMNS)
    finally:
        stack.close()


__all__ = ["prune_command", "register"]
