"""Remote data sources."""

from marketflow.core.sources.base import DataSource, HistoricalPoint, SymbolResolution
from marketflow.core.sources.coinapi import CoinApiClient, CoinApiConfig, CoinApiSource, is_coinapi_period

__all__ = [
    "CoinApiClient",
    "CoinApiConfig",
    "CoinApiSource",
    "DataSource",
    "HistoricalPoint",
    "SymbolResolution",
    "is_coinapi_period",
]
