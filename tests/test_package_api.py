"""Tests for the top level marketflow exports."""

from datetime import datetime

import marketflow
from marketflow import Dataset, Interval, MarketInstant, merge, parse_interval


class TestMarketFlowModule:
    """Test main marketflow module."""

    def test_version_available(self):
        assert marketflow.__version__ == "0.1.0"

    def test_all_exports_available(self):
        for export in marketflow.__all__:
            assert hasattr(marketflow, export)

    def test_top_level_workflow(self):
        """Merging through the top level names gives a queryable dataset."""
        point = MarketInstant(time=datetime(2024, 1, 1), open=1.0, high=2.0, low=0.5, close=1.5, volume=3.0)

        dataset = merge(
            Dataset.empty(),
            symbol="BITSTAMP_SPOT_BTC_USD",
            base_asset="BTC",
            quote_asset="USD",
            exchange="BITSTAMP",
            interval="1DAY",
            points=[point],
        )

        flow = dataset.symbol_flow("BITSTAMP_SPOT_BTC_USD", parse_interval("1DAY"))
        assert isinstance(flow.interval, Interval)
        assert flow.points == (point,)
