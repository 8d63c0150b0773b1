from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from marketflow.core.config import MarketFlowConfig
from marketflow.core.models import MarketInstant
from marketflow.core.services.merge import merge
from marketflow.core.storage import DuckDBDatasetStorage


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def cli_obj() -> dict[str, object]:
    """Context object carrying default settings so no user config file is read."""

    return {"config": MarketFlowConfig()}


@pytest.fixture
def dataset_file(tmp_path: Path) -> Path:
    """A stored dataset with daily BTC/USD bars for five days and hourly ETH/EUR bars."""

    def bars(times: list[datetime]) -> list[MarketInstant]:
        return [
            MarketInstant(time=moment, open=1.0, high=2.0, low=0.5, close=1.5, volume=10.0) for moment in times
        ]

    dataset = merge(
        None,
        symbol="BITSTAMP_SPOT_BTC_USD",
        base_asset="BTC",
        quote_asset="USD",
        exchange="BITSTAMP",
        interval="1DAY",
        points=bars([datetime(2024, 1, day) for day in range(1, 6)]),
        declared_start=datetime(2024, 1, 1),
        declared_end=datetime(2024, 1, 5),
    )
    dataset = merge(
        dataset,
        symbol="KRAKEN_SPOT_ETH_EUR",
        base_asset="ETH",
        quote_asset="EUR",
        exchange="KRAKEN",
        interval="1HRS",
        points=bars([datetime(2024, 1, 1, hour) for hour in range(3)]),
    )
    path = tmp_path / "market.duckdb"
    assert DuckDBDatasetStorage().store(dataset, path)
    return path
