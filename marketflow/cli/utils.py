"""Utility helpers shared across CLI commands."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TextIO

import typer

from marketflow.core.config import ConfigManager, MarketFlowConfig
from marketflow.core.exceptions import (
    AggregationError,
    AggregationTimeoutError,
    ConfigurationError,
    DataValidationError,
    MarketFlowError,
    SourceError,
    StorageError,
)
from marketflow.core.models.interval import Interval
from marketflow.core.services.intervals import parse_interval, to_naive_utc

from .constants import (
    SOURCE_EXIT_CODE,
    STORAGE_EXIT_CODE,
    SYSTEM_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    VALIDATION_EXIT_CODE,
)
from .formatters import OutputFormatter, create_formatter


@dataclass(slots=True)
class CLIOptions:
    """Resolved options derived from the Typer context."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    config: MarketFlowConfig | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    """Extract :class:`CLIOptions` from the Typer context object."""

    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        config=data.get("config"),
    )


def get_config(ctx: typer.Context) -> MarketFlowConfig:
    options = get_cli_options(ctx)
    if options.config is None:
        with reporting_errors():
            options.config = ConfigManager().get_config()
        ctx.obj["config"] = options.config
    return options.config


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack, CLIOptions]:
    """Resolve formatter and writable stream for the current command."""

    options = get_cli_options(ctx)
    try:
        formatter = create_formatter(options.format, no_color=options.no_color)
    except ValueError as exc:  # pragma: no cover - validated at callback
        emit_error(str(exc), "INVALID_FORMAT")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc

    stack = ExitStack()
    stream: TextIO
    if options.output_path is not None:
        try:
            stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
        except OSError as exc:
            stack.close()
            emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    else:
        stream = sys.stdout

    return formatter, stream, stack, options


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the process exit code reported for it."""

    if isinstance(error, AggregationTimeoutError):
        return TIMEOUT_EXIT_CODE
    if isinstance(error, (AggregationError, SourceError)):
        return SOURCE_EXIT_CODE
    if isinstance(error, StorageError):
        return STORAGE_EXIT_CODE
    if isinstance(error, (DataValidationError, ConfigurationError, ValueError)):
        return VALIDATION_EXIT_CODE
    return SYSTEM_EXIT_CODE


@contextmanager
def reporting_errors() -> Iterator[None]:
    """Turn marketflow errors raised inside the block into an error payload and exit code."""

    try:
        yield
    except MarketFlowError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=exit_code_for(error)) from error
    except ValueError as error:
        emit_error(str(error), "VALIDATION_ERROR")
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    except OSError as error:
        emit_error(str(error), "SYSTEM_ERROR")
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error


def parse_time_option(value: str | None, param_hint: str) -> datetime | None:
    """Parse an ISO-8601 option value into a naive UTC datetime."""

    if value is None or not value.strip():
        return None
    try:
        return to_naive_utc(datetime.fromisoformat(value.strip()))
    except ValueError as exc:
        raise typer.BadParameter(f"'{value}' is not an ISO-8601 date or time.", param_hint=param_hint) from exc


def parse_interval_option(value: str, param_hint: str) -> Interval:
    try:
        return parse_interval(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint=param_hint) from exc


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, (str, int, float, bool)) or value is None:
            sanitized[key] = value
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized


__all__ = [
    "CLIOptions",
    "emit_error",
    "exit_code_for",
    "get_cli_options",
    "get_config",
    "parse_interval_option",
    "parse_time_option",
    "prepare_output",
    "reporting_errors",
]
