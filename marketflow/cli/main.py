"""Main entry point for the marketflow command line interface."""

from __future__ import annotations

import sys
from pathlib import Path

import typer

from marketflow.core.logging import configure_logging

from .aggregate import register as register_aggregate_command
from .formatters import create_formatter
from .ingest import register as register_ingest_command
from .prune import register as register_prune_command
from .utils import get_config
from .view import register as register_view_command


def create_app() -> typer.Typer:
    """Create a Typer application instance for marketflow."""

    app = typer.Typer(add_completion=False, help="marketflow command line interface", no_args_is_help=True)

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help="Output format (table or jsonl).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Logging level for messages written to stderr. Defaults to the configured level.",
        ),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Log everything down to DEBUG."),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        config = get_config(ctx)
        level = (log_level or config.logging.level).upper()
        try:
            configure_logging(
                level=level,
                verbose=verbose,
                colorize=not no_color and sys.stderr.isatty(),
                serialize=config.logging.json,
                file_output=bool(config.logging.file),
                file_path=config.logging.file,
            )
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--log-level") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "log_level": level,
                "no_color": no_color,
            }
        )

    register_aggregate_command(app)
    register_ingest_command(app)
    register_prune_command(app)
    register_view_command(app)
    return app


app = create_app()


def run() -> None:
    app()


__all__ = ["app", "create_app", "run"]
