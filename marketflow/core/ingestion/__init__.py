"""Ingestion of historical OHLCV data from delimited text files."""

from marketflow.core.ingestion.aggregator import DEFAULT_BATCH_SIZE, IngestResult, ingest_rows, run_ingest
from marketflow.core.ingestion.metadata import (
    CRYPTO_DATA_DOWNLOAD,
    CRYPTO_TICK,
    PRESETS,
    ColumnSpec,
    TabularStreamMetadata,
    detect_metadata,
    get_preset,
)
from marketflow.core.ingestion.reader import TimestampedOhlcv, read_historical
from marketflow.core.ingestion.timestamps import TimestampFormat

__all__ = [
    "CRYPTO_DATA_DOWNLOAD",
    "CRYPTO_TICK",
    "ColumnSpec",
    "DEFAULT_BATCH_SIZE",
    "IngestResult",
    "PRESETS",
    "TabularStreamMetadata",
    "TimestampFormat",
    "TimestampedOhlcv",
    "detect_metadata",
    "get_preset",
    "ingest_rows",
    "read_historical",
    "run_ingest",
]
