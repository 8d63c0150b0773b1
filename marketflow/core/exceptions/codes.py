"""Stable error codes shared by exceptions, CLI payloads and logs."""

from enum import Enum


class ErrorCode(str, Enum):
    """错误代码枚举."""

    GENERAL_ERROR = "GENERAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INTERVAL = "INVALID_INTERVAL"
    INVALID_RANGE = "INVALID_RANGE"
    RANGE_NARROWING = "RANGE_NARROWING"
    UNSUPPORTED_SYMBOL_TYPE = "UNSUPPORTED_SYMBOL_TYPE"
    SYMBOL_METADATA_CONFLICT = "SYMBOL_METADATA_CONFLICT"
    TERM_NOT_FOUND = "TERM_NOT_FOUND"
    FILTER_SPEC_ERROR = "FILTER_SPEC_ERROR"
    INGESTION_ERROR = "INGESTION_ERROR"
    SOURCE_ERROR = "SOURCE_ERROR"
    SOURCE_REQUEST_ERROR = "SOURCE_REQUEST_ERROR"
    AUTHENTICATION_ERROR = "AUTHENTICATION_ERROR"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    NO_DATA = "NO_DATA"
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    AGGREGATION_ERROR = "AGGREGATION_ERROR"
    AGGREGATION_TIMEOUT = "AGGREGATION_TIMEOUT"
    STORAGE_ERROR = "STORAGE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


__all__ = ["ErrorCode"]
