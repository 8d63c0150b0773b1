"""Live checks against the CoinAPI sandbox; they need an API key in the environment."""

from __future__ import annotations

import asyncio
import os
from datetime import datetime
from pathlib import Path

import pytest

from marketflow.core.config import resolve_api_key
from marketflow.core.exceptions import ConfigurationError
from marketflow.core.models import Denomination, Interval
from marketflow.core.services.scheduler import AggregationRequest, run_aggregation
from marketflow.core.sources import CoinApiClient, CoinApiConfig, CoinApiSource
from marketflow.core.storage import DuckDBDatasetStorage


@pytest.fixture(scope="module")
def api_key() -> str:
    try:
        return resolve_api_key("coinapi", os.environ)
    except ConfigurationError:
        pytest.skip("no CoinAPI key in the environment")


def _source() -> CoinApiSource:
    return CoinApiSource(CoinApiClient(CoinApiConfig(sandbox=True)))


@pytest.mark.integration
class TestCoinApiLive:
    def test_resolve_spot_symbol(self, api_key: str) -> None:
        async def scenario():
            async with _source() as source:
                return await source.resolve_symbol(api_key, "BITSTAMP", "BTC", "USD")

        resolution = asyncio.run(scenario())

        assert resolution.symbol_id == "BITSTAMP_SPOT_BTC_USD"

    def test_aggregate_a_week_of_daily_bars(self, api_key: str, tmp_path: Path) -> None:
        request = AggregationRequest(
            exchange="BITSTAMP",
            base="BTC",
            quote="USD",
            interval=Interval(Denomination.DAYS, 1),
            start=datetime(2023, 1, 1),
            end=datetime(2023, 1, 7),
            limit=10,
        )

        async def scenario():
            async with _source() as source:
                return await run_aggregation(
                    tmp_path / "market.duckdb", DuckDBDatasetStorage(), source, api_key, request
                )

        result = asyncio.run(scenario())

        assert 0 < result.points_received <= 7
        assert result.dataset.symbol_flow(result.symbol, request.interval) is not None
