"""Exception handling module."""

from marketflow.core.exceptions.base import (
    AggregationError,
    AggregationTimeoutError,
    AuthenticationError,
    ConfigurationError,
    DataValidationError,
    FilterSpecError,
    IngestionError,
    InvalidIntervalError,
    InvalidRangeError,
    MarketFlowError,
    NoDataError,
    RangeNarrowingError,
    RateLimitError,
    SourceError,
    SourceRequestError,
    StorageError,
    SymbolMetadataConflictError,
    SymbolNotFoundError,
    TermNotFoundError,
    UnsupportedSymbolTypeError,
)
from marketflow.core.exceptions.codes import ErrorCode

__all__ = [
    "MarketFlowError",
    "DataValidationError",
    "InvalidIntervalError",
    "InvalidRangeError",
    "RangeNarrowingError",
    "UnsupportedSymbolTypeError",
    "SymbolMetadataConflictError",
    "FilterSpecError",
    "IngestionError",
    "TermNotFoundError",
    "SourceError",
    "SourceRequestError",
    "AuthenticationError",
    "RateLimitError",
    "NoDataError",
    "SymbolNotFoundError",
    "AggregationError",
    "AggregationTimeoutError",
    "StorageError",
    "ConfigurationError",
    "ErrorCode",
]
