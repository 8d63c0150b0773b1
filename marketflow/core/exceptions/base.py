"""marketflow核心异常类."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from marketflow.core.exceptions.codes import ErrorCode

if TYPE_CHECKING:
    from marketflow.core.models.dataset import Dataset


class MarketFlowError(Exception):
    """marketflow基础异常类."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.GENERAL_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        """初始化异常.

        Args:
            message: 错误消息
            error_code: 错误代码
            details: 额外详情
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload representing the error."""

        return {"code": self.error_code, "message": self.message, "details": dict(self.details)}


class DataValidationError(MarketFlowError):
    """数据验证异常."""

    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.VALIDATION_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)


class InvalidIntervalError(DataValidationError, ValueError):
    """时间间隔格式异常."""

    def __init__(self, message: str, value: str | None = None, details: dict[str, Any] | None = None):
        super_details = details or {}
        if value is not None:
            super_details["value"] = value
        super().__init__(message, ErrorCode.INVALID_INTERVAL.value, super_details)
        self.value = value


class InvalidRangeError(DataValidationError):
    """时间范围异常."""

    def __init__(
        self,
        message: str,
        start: datetime | None = None,
        end: datetime | None = None,
        error_code: str = ErrorCode.INVALID_RANGE.value,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details.setdefault("start", start.isoformat() if start else None)
        super_details.setdefault("end", end.isoformat() if end else None)
        super().__init__(message, error_code, super_details)
        self.start = start
        self.end = end


class RangeNarrowingError(InvalidRangeError):
    """时间范围收窄异常."""

    def __init__(
        self,
        message: str,
        start: datetime | None = None,
        end: datetime | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, start, end, ErrorCode.RANGE_NARROWING.value, details)


class UnsupportedSymbolTypeError(DataValidationError):
    """不支持的交易品种类型异常."""

    def __init__(self, message: str, symbol: str, symbol_type: str, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details.update({"symbol": symbol, "symbol_type": symbol_type})
        super().__init__(message, ErrorCode.UNSUPPORTED_SYMBOL_TYPE.value, super_details)
        self.symbol = symbol
        self.symbol_type = symbol_type


class SymbolMetadataConflictError(DataValidationError):
    """交易品种元数据冲突异常."""

    def __init__(self, message: str, symbol: str, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["symbol"] = symbol
        super().__init__(message, ErrorCode.SYMBOL_METADATA_CONFLICT.value, super_details)
        self.symbol = symbol


class FilterSpecError(DataValidationError, ValueError):
    """过滤条件格式异常."""

    def __init__(self, message: str, spec: str | None = None, details: dict[str, Any] | None = None):
        super_details = details or {}
        if spec is not None:
            super_details["spec"] = spec
        super().__init__(message, ErrorCode.FILTER_SPEC_ERROR.value, super_details)
        self.spec = spec


class IngestionError(DataValidationError):
    """数据导入异常."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.INGESTION_ERROR.value, details)


class TermNotFoundError(MarketFlowError, LookupError):
    """索引项不存在异常."""

    def __init__(self, index: int, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["index"] = index
        super().__init__(f"No term is assigned to index {index}.", ErrorCode.TERM_NOT_FOUND.value, super_details)
        self.index = index


class SourceError(MarketFlowError):
    """数据源相关异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        error_code: str = ErrorCode.SOURCE_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details.setdefault("provider", provider_name)
        super().__init__(message, error_code, super_details)
        self.provider_name = provider_name


class SourceRequestError(SourceError):
    """数据源请求异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, provider_name, ErrorCode.SOURCE_REQUEST_ERROR.value, super_details)
        self.status_code = status_code


class AuthenticationError(SourceError):
    """认证异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if status_code is not None:
            super_details["status_code"] = status_code
        super().__init__(message, provider_name, ErrorCode.AUTHENTICATION_ERROR.value, super_details)
        self.status_code = status_code


class RateLimitError(SourceError):
    """速率限制异常."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        retry_after: datetime | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if retry_after is not None:
            super_details["retry_after"] = retry_after.isoformat()
        super().__init__(message, provider_name, ErrorCode.RATE_LIMIT_ERROR.value, super_details)
        self.retry_after = retry_after


class NoDataError(SourceError):
    """数据源无可用数据异常."""

    def __init__(self, message: str, provider_name: str, details: dict[str, Any] | None = None):
        super().__init__(message, provider_name, ErrorCode.NO_DATA.value, details)


class SymbolNotFoundError(SourceError):
    """交易品种无法解析异常."""

    def __init__(self, message: str, provider_name: str, symbol_id: str, details: dict[str, Any] | None = None):
        super_details = details or {}
        super_details["symbol_id"] = symbol_id
        super().__init__(message, provider_name, ErrorCode.SYMBOL_NOT_FOUND.value, super_details)
        self.symbol_id = symbol_id


class AggregationError(MarketFlowError):
    """数据聚合异常.

    Carries the dataset merged before the failure so that callers may decide
    whether to persist it.
    """

    def __init__(
        self,
        message: str,
        symbol: str,
        interval: str,
        start: datetime | None = None,
        end: datetime | None = None,
        partial_dataset: Dataset | None = None,
        error_code: str = ErrorCode.AGGREGATION_ERROR.value,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        super_details.update(
            {
                "symbol": symbol,
                "interval": interval,
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            }
        )
        super().__init__(message, error_code, super_details)
        self.symbol = symbol
        self.interval = interval
        self.start = start
        self.end = end
        self.partial_dataset = partial_dataset


class AggregationTimeoutError(AggregationError):
    """数据聚合超时异常."""

    def __init__(
        self,
        message: str,
        symbol: str,
        interval: str,
        timeout: float,
        start: datetime | None = None,
        end: datetime | None = None,
        partial_dataset: Dataset | None = None,
    ):
        super().__init__(
            message,
            symbol,
            interval,
            start,
            end,
            partial_dataset,
            ErrorCode.AGGREGATION_TIMEOUT.value,
            {"timeout": timeout},
        )
        self.timeout = timeout


class StorageError(MarketFlowError):
    """存储相关异常."""

    def __init__(self, message: str, path: str | None = None, details: dict[str, Any] | None = None):
        super_details = details or {}
        if path is not None:
            super_details["path"] = path
        super().__init__(message, ErrorCode.STORAGE_ERROR.value, super_details)
        self.path = path


class ConfigurationError(MarketFlowError):
    """配置异常."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR.value, details)
