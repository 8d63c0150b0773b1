"""Structured logging utilities built on loguru."""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import IO, Any, Protocol

from loguru import logger

from marketflow.core.logging.config import LogConfig

_CONTEXT_VAR: ContextVar[dict[str, Any]] = ContextVar("marketflow_log_context", default={})

_HUMAN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - <level>{message}</level>"
)


class Diagnostics(Protocol):
    """Anything that accepts leveled diagnostic messages, e.g. a bound loguru logger."""

    def debug(self, message: str, *args: Any, **kwargs: Any) -> Any: ...

    def info(self, message: str, *args: Any, **kwargs: Any) -> Any: ...

    def warning(self, message: str, *args: Any, **kwargs: Any) -> Any: ...

    def error(self, message: str, *args: Any, **kwargs: Any) -> Any: ...


def _patch_record(record: dict[str, Any]) -> None:
    extra = record["extra"]
    for key, value in _CONTEXT_VAR.get({}).items():
        extra.setdefault(key, value)
    extra.setdefault("component", record.get("name") or "marketflow")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _format_payload(record: dict[str, Any]) -> dict[str, Any]:
    extra = dict(record.get("extra", {}))
    component = extra.pop("component", None)
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "component": component,
        "message": record.get("message"),
    }
    if extra:
        payload["context"] = extra
    exception = record.get("exception")
    if exception:
        payload["exception"] = str(exception.value) if exception.value is not None else str(exception)
    return payload


class _StreamJsonSink:
    """Sink writing JSON lines to a text stream."""

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream

    def __call__(self, message: Any) -> None:
        self._stream.write(json.dumps(_format_payload(message.record), default=_json_default))
        self._stream.write("\n")
        self._stream.flush()


class _FileJsonSink:
    """Sink appending JSON lines to a file path."""

    def __init__(self, path: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._path = path

    def __call__(self, message: Any) -> None:
        with open(self._path, "a", encoding="utf-8") as file:
            file.write(json.dumps(_format_payload(message.record), default=_json_default))
            file.write("\n")


def _configure_from_config(config: LogConfig) -> None:
    level = config.effective_level
    handlers: list[dict[str, Any]] = []
    if config.console_output:
        stream = config.console_stream or sys.stderr
        if config.serialize:
            handlers.append({"sink": _StreamJsonSink(stream), "level": level, "enqueue": config.enqueue})
        else:
            handlers.append(
                {
                    "sink": stream,
                    "level": level,
                    "format": _HUMAN_FORMAT,
                    "colorize": config.colorize,
                    "backtrace": config.backtrace,
                    "diagnose": config.diagnose,
                    "enqueue": config.enqueue,
                }
            )
    if config.file_output and config.file_path:
        handlers.append({"sink": _FileJsonSink(config.file_path), "level": level, "enqueue": config.enqueue})

    logger.configure(handlers=handlers, patcher=_patch_record, extra=dict(config.extra))


def configure_logging(level: str = "WARNING", verbose: bool = False, **kwargs: Any) -> LogConfig:
    """Configure logging with the provided level and options."""

    config = LogConfig(level=level, verbose=verbose, **kwargs)
    _configure_from_config(config)
    return config


def get_logger(name: str | None = None) -> Any:
    """Return the global logger, bound to component ``name`` when given."""

    if name:
        return logger.bind(component=name)
    return logger


@contextmanager
def log_context(**extra: Any) -> Iterator[dict[str, Any]]:
    """Attach ``extra`` to every record logged inside the block."""

    previous_context = _CONTEXT_VAR.get({})
    new_context = {**previous_context, **extra}
    token = _CONTEXT_VAR.set(new_context)
    try:
        yield new_context
    finally:
        _CONTEXT_VAR.reset(token)


configure_logging()


__all__ = [
    "Diagnostics",
    "configure_logging",
    "get_logger",
    "log_context",
    "logger",
]
