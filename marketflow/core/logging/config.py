"""Logging configuration primitives."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class LogConfig(BaseModel):
    """Configuration model used to initialise logging."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = "WARNING"
    verbose: bool = False
    console_output: bool = True
    console_stream: Any = None
    file_output: bool = False
    file_path: str | None = None
    serialize: bool = False
    enqueue: bool = False
    colorize: bool = False
    backtrace: bool = False
    diagnose: bool = False
    extra: dict[str, Any] = {}

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in _LEVELS:
            raise ValueError(f"Unknown log level '{value}'. Expected one of: {', '.join(sorted(_LEVELS))}.")
        return normalized

    @property
    def effective_level(self) -> str:
        """``DEBUG`` when verbose output was requested, else ``level``."""

        return "DEBUG" if self.verbose else self.level


__all__ = ["LogConfig"]
