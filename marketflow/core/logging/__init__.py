"""Logging utilities."""

from marketflow.core.logging.config import LogConfig
from marketflow.core.logging.logger import (
    Diagnostics,
    configure_logging,
    get_logger,
    log_context,
    logger,
)

__all__ = [
    "Diagnostics",
    "LogConfig",
    "configure_logging",
    "get_logger",
    "log_context",
    "logger",
]
