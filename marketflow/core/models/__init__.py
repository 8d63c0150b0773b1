"""Data models module."""

from marketflow.core.models.dataset import Dataset
from marketflow.core.models.index import SymbolMetadata, SymbolType, TermIndex
from marketflow.core.models.interval import Denomination, Interval
from marketflow.core.models.market import MarketFlow, MarketInstant, SymbolIntervalGroup, TimeRange

__all__ = [
    "Dataset",
    "Denomination",
    "Interval",
    "MarketFlow",
    "MarketInstant",
    "SymbolIntervalGroup",
    "SymbolMetadata",
    "SymbolType",
    "TermIndex",
    "TimeRange",
]
