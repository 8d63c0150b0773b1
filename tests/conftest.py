"""Pytest configuration for marketflow test suite."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from marketflow.core.logging import configure_logging
from marketflow.core.models import Interval
from marketflow.core.models.interval import Denomination


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--marketflow-run-integration",
        action="store_true",
        default=False,
        help="Run marketflow integration tests that require external services.",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the integration marker for marketflow tests."""

    config.addinivalue_line(
        "markers",
        "integration: marks marketflow tests requiring network or external services",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--marketflow-run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="integration tests require --marketflow-run-integration",
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Restore the default sinks after tests that reconfigure logging."""

    yield
    configure_logging()


class RecordingDiagnostics:
    """Diagnostics sink that keeps messages per level."""

    def __init__(self) -> None:
        self.messages: dict[str, list[str]] = {"debug": [], "info": [], "warning": [], "error": []}

    def debug(self, message: str, *args, **kwargs) -> None:
        self.messages["debug"].append(message)

    def info(self, message: str, *args, **kwargs) -> None:
        self.messages["info"].append(message)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.messages["warning"].append(message)

    def error(self, message: str, *args, **kwargs) -> None:
        self.messages["error"].append(message)

    @property
    def warnings(self) -> list[str]:
        return self.messages["warning"]


@pytest.fixture
def diagnostics() -> RecordingDiagnostics:
    return RecordingDiagnostics()


@pytest.fixture
def daily() -> Interval:
    return Interval(Denomination.DAYS, 1)

