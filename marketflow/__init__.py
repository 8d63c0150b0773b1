"""marketflow - OHLCV市场数据聚合库

Downloads and ingests OHLCV market data, merges it into a deduplicated
multi-symbol, multi-interval dataset and stores one dataset per file.
"""

from marketflow.core.exceptions import MarketFlowError
from marketflow.core.models import (
    Dataset,
    Interval,
    MarketFlow,
    MarketInstant,
    SymbolIntervalGroup,
    SymbolMetadata,
    TermIndex,
    TimeRange,
)
from marketflow.core.services import (
    AggregationMode,
    AggregationRequest,
    DatasetBuilder,
    DownloadScheduler,
    ReconciliationPolicy,
    format_interval,
    merge,
    parse_interval,
    prune,
)
from marketflow.core.storage import DuckDBDatasetStorage

__version__ = "0.1.0"

__all__ = [
    "AggregationMode",
    "AggregationRequest",
    "Dataset",
    "DatasetBuilder",
    "DownloadScheduler",
    "DuckDBDatasetStorage",
    "Interval",
    "MarketFlow",
    "MarketFlowError",
    "MarketInstant",
    "ReconciliationPolicy",
    "SymbolIntervalGroup",
    "SymbolMetadata",
    "TermIndex",
    "TimeRange",
    "__version__",
    "format_interval",
    "merge",
    "parse_interval",
    "prune",
]
