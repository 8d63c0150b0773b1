"""CoinAPI REST client and data source.

The client is a thin asynchronous wrapper over the ``/v1/symbols`` and
``/v1/ohlcv/{symbol_id}/history`` endpoints that maps CoinAPI status codes to
typed source errors and exposes the rate-limit headers of every response.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator

from marketflow.core.exceptions import (
    AuthenticationError,
    InvalidIntervalError,
    NoDataError,
    RateLimitError,
    SourceError,
    SourceRequestError,
    SymbolNotFoundError,
    UnsupportedSymbolTypeError,
)
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.index import SymbolType
from marketflow.core.models.interval import Interval
from marketflow.core.services.intervals import format_interval, to_naive_utc
from marketflow.core.sources.base import HistoricalPoint, SymbolResolution

PROVIDER_NAME = "coinapi"
PRODUCTION_URL = "https://rest.coinapi.io/v1/"
SANDBOX_URL = "https://rest-sandbox.coinapi.io/v1/"

# Periods listed by CoinAPI's "list all periods" endpoint.
_PERIOD_PATTERN = re.compile(
    r"""
    ([1-6]|[1-3]0|15)(SEC|MIN)  # 1-6, 10, 15, 20 or 30 seconds or minutes
    | ([1-46]|12)HRS            # 1-4, 6 or 12 hours
    | ([1-357]|10)DAY           # 1-3, 5, 7 or 10 days
    | [1-46]MTH                 # 1-4 or 6 months
    | [1-5]YRS                  # 1-5 years
    """,
    re.VERBOSE | re.IGNORECASE,
)

_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")

T = TypeVar("T")


def is_coinapi_period(text: str) -> bool:
    """Return whether ``text`` names a period CoinAPI serves OHLCV data for."""

    return _PERIOD_PATTERN.fullmatch(text.strip()) is not None


def parse_coinapi_time(value: Any) -> Any:
    """Parse CoinAPI timestamps (seven fractional digits, ``Z`` suffix) to naive UTC."""

    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not isinstance(value, str):
        return value
    text = _FRACTION_PATTERN.sub(r"\1", value.strip())
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def format_coinapi_time(moment: datetime) -> str:
    return to_naive_utc(moment).strftime("%Y-%m-%dT%H:%M:%S")


class CoinApiSymbol(BaseModel):
    """Entry of the ``/symbols`` listing."""

    model_config = ConfigDict(frozen=True)

    symbol_id: str
    exchange_id: str
    symbol_type: str
    asset_id_base: str
    asset_id_quote: str


class CoinApiOhlcv(BaseModel):
    """Entry of the ``/ohlcv/{symbol_id}/history`` listing."""

    model_config = ConfigDict(frozen=True)

    time_period_start: datetime
    time_period_end: datetime
    time_open: datetime | None = None
    time_close: datetime | None = None
    price_open: float
    price_high: float
    price_low: float
    price_close: float
    volume_traded: float
    trades_count: int = 0

    @field_validator("time_period_start", "time_period_end", "time_open", "time_close", mode="before")
    @classmethod
    def _parse_time(cls, value: Any) -> Any:
        return parse_coinapi_time(value)

    def to_point(self) -> HistoricalPoint:
        return HistoricalPoint(
            time=self.time_period_start,
            open=self.price_open,
            high=self.price_high,
            low=self.price_low,
            close=self.price_close,
            volume=self.volume_traded,
            trades=self.trades_count,
        )


_SYMBOLS_ADAPTER = TypeAdapter(list[CoinApiSymbol])
_OHLCV_ADAPTER = TypeAdapter(list[CoinApiOhlcv])


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate-limit headers of a CoinAPI response; missing headers are ``None``."""

    limit: int | None = None
    remaining: int | None = None
    request_cost: int | None = None
    reset: datetime | None = None

    @classmethod
    def from_headers(cls, headers: httpx.Headers) -> RateLimitInfo:
        def integer(name: str) -> int | None:
            value = headers.get(name)
            try:
                return int(value) if value is not None else None
            except ValueError:
                return None

        reset_header = headers.get("X-RateLimit-Reset")
        try:
            reset = parse_coinapi_time(reset_header) if reset_header else None
        except ValueError:
            reset = None
        return cls(
            limit=integer("X-RateLimit-Limit"),
            remaining=integer("X-RateLimit-Remaining"),
            request_cost=integer("X-RateLimit-Request-Cost"),
            reset=reset,
        )


@dataclass(frozen=True)
class CoinApiResult(Generic[T]):
    """Parsed response body together with its rate-limit information."""

    value: T
    rate_limit: RateLimitInfo = field(default_factory=RateLimitInfo)


@dataclass
class CoinApiConfig:
    """Connection settings for :class:`CoinApiClient`."""

    base_url: str | None = None
    sandbox: bool = False
    timeout: float = 30.0
    user_agent: str = "marketflow/0.1.0"

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")

    @property
    def resolved_base_url(self) -> str:
        if self.base_url:
            return self.base_url if self.base_url.endswith("/") else f"{self.base_url}/"
        return SANDBOX_URL if self.sandbox else PRODUCTION_URL


class CoinApiClient:
    """Asynchronous, stateless CoinAPI REST client."""

    def __init__(
        self,
        config: CoinApiConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self.config = config or CoinApiConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._diagnostics = diagnostics or get_logger("marketflow.sources.coinapi")
        self.last_rate_limit: RateLimitInfo | None = None

    async def __aenter__(self) -> CoinApiClient:
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.resolved_base_url,
                timeout=httpx.Timeout(self.config.timeout),
                headers={"Accept": "application/json", "User-Agent": self.config.user_agent},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get_symbols(
        self,
        api_key: str,
        *,
        filter_symbol_id: Sequence[str] | None = None,
        filter_exchange_id: Sequence[str] | None = None,
        filter_asset_id: Sequence[str] | None = None,
    ) -> CoinApiResult[list[CoinApiSymbol]]:
        params: dict[str, str] = {}
        if filter_symbol_id:
            params["filter_symbol_id"] = ",".join(filter_symbol_id)
        if filter_exchange_id:
            params["filter_exchange_id"] = ",".join(filter_exchange_id)
        if filter_asset_id:
            params["filter_asset_id"] = ",".join(filter_asset_id)

        payload, rate_limit = await self._get("symbols", api_key, params)
        return CoinApiResult(self._parse(_SYMBOLS_ADAPTER, payload), rate_limit)

    async def get_historical_data(
        self,
        api_key: str,
        symbol_id: str,
        period_id: str,
        time_start: datetime,
        time_end: datetime | None = None,
        *,
        include_empty_items: bool | None = None,
        limit: int | None = None,
    ) -> CoinApiResult[list[CoinApiOhlcv]]:
        params: dict[str, str] = {"period_id": period_id, "time_start": format_coinapi_time(time_start)}
        if time_end is not None:
            params["time_end"] = format_coinapi_time(time_end)
        if include_empty_items is not None:
            params["include_empty_items"] = str(include_empty_items).lower()
        if limit is not None:
            params["limit"] = str(limit)

        payload, rate_limit = await self._get(f"ohlcv/{symbol_id}/history", api_key, params)
        return CoinApiResult(self._parse(_OHLCV_ADAPTER, payload), rate_limit)

    async def _get(self, path: str, api_key: str, params: dict[str, str]) -> tuple[Any, RateLimitInfo]:
        client = self._ensure_client()
        try:
            response = await client.get(path, params=params, headers={"X-CoinAPI-Key": api_key})
        except httpx.RequestError as exc:
            raise SourceRequestError(
                f"Request to CoinAPI failed: {exc}", PROVIDER_NAME, details={"path": path}
            ) from exc

        rate_limit = RateLimitInfo.from_headers(response.headers)
        self.last_rate_limit = rate_limit
        if rate_limit.remaining is not None:
            self._diagnostics.debug(
                f"CoinAPI {path}: {rate_limit.remaining} of {rate_limit.limit} requests remaining "
                f"(cost {rate_limit.request_cost})."
            )

        if response.status_code != 200:
            self._raise_for_status(response, rate_limit)

        try:
            return response.json(), rate_limit
        except ValueError as exc:
            raise SourceError(
                "CoinAPI returned a body that is not valid JSON.", PROVIDER_NAME, details={"path": path}
            ) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, rate_limit: RateLimitInfo) -> None:
        status = response.status_code
        reason = _error_message(response)
        if status == 400:
            raise SourceRequestError(f"The request was invalid (HTTP status code 400). {reason}", PROVIDER_NAME, 400)
        if status == 401:
            raise AuthenticationError(f"The API key was incorrect (HTTP status code 401). {reason}", PROVIDER_NAME, 401)
        if status == 403:
            raise AuthenticationError(
                f"The API key doesn't have permission for the requested resource (HTTP status code 403). {reason}",
                PROVIDER_NAME,
                403,
            )
        if status == 429:
            raise RateLimitError(
                f"The rate limit was exceeded (HTTP status code 429). {reason}",
                PROVIDER_NAME,
                retry_after=rate_limit.reset,
            )
        if status == 550:
            raise NoDataError(f"No data was available (HTTP status code 550). {reason}", PROVIDER_NAME)
        raise SourceError(
            f"CoinAPI responded with HTTP status code {status}. {reason}",
            PROVIDER_NAME,
            details={"status_code": status},
        )

    @staticmethod
    def _parse(adapter: TypeAdapter[list[T]], payload: Any) -> list[T]:
        try:
            return adapter.validate_python(payload)
        except ValidationError as exc:
            raise SourceError(
                f"CoinAPI returned an unexpected payload: {exc.error_count()} validation errors.",
                PROVIDER_NAME,
                details={"errors": [error["msg"] for error in exc.errors()[:5]]},
            ) from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return ""


class CoinApiSource:
    """:class:`~marketflow.core.sources.base.DataSource` backed by CoinAPI."""

    name = PROVIDER_NAME
    limit_request_factor = 100

    def __init__(self, client: CoinApiClient | None = None, *, diagnostics: Diagnostics | None = None) -> None:
        self._diagnostics = diagnostics or get_logger("marketflow.sources.coinapi")
        self.client = client or CoinApiClient(diagnostics=self._diagnostics)

    async def __aenter__(self) -> CoinApiSource:
        await self.client.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.client.close()

    def to_source_notation(self, interval: Interval) -> str:
        notation = format_interval(interval)
        if not is_coinapi_period(notation):
            raise InvalidIntervalError(f"CoinAPI does not serve data at the interval {notation}.", value=notation)
        return notation

    @staticmethod
    def symbol_id_for(exchange: str, base: str, quote: str) -> str:
        return f"{exchange.upper()}_SPOT_{base.upper()}_{quote.upper()}"

    async def resolve_symbol(self, api_key: str, exchange: str, base: str, quote: str) -> SymbolResolution:
        possible_symbol = self.symbol_id_for(exchange, base, quote)
        result = await self.client.get_symbols(api_key, filter_symbol_id=[possible_symbol])
        symbols = result.value
        if not symbols:
            raise SymbolNotFoundError(
                f"No symbol results were received for {possible_symbol}.", PROVIDER_NAME, possible_symbol
            )
        if len(symbols) > 1:
            self._diagnostics.warning(
                f"Multiple symbol results were received for {possible_symbol}. The first one will be used, "
                "which may not be the desired behavior."
            )

        symbol = symbols[0]
        try:
            symbol_type = SymbolType.from_text(symbol.symbol_type)
        except ValueError:
            raise UnsupportedSymbolTypeError(
                f"CoinAPI reported unknown symbol type {symbol.symbol_type} for {symbol.symbol_id}.",
                symbol=symbol.symbol_id,
                symbol_type=symbol.symbol_type,
            ) from None
        return SymbolResolution(
            symbol_id=symbol.symbol_id,
            base=symbol.asset_id_base,
            quote=symbol.asset_id_quote,
            exchange=symbol.exchange_id,
            symbol_type=symbol_type,
        )

    async def fetch_historical(
        self,
        api_key: str,
        symbol_id: str,
        interval_notation: str,
        start: datetime,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[HistoricalPoint]:
        result = await self.client.get_historical_data(api_key, symbol_id, interval_notation, start, end, limit=limit)
        return [entry.to_point() for entry in result.value]


__all__ = [
    "CoinApiClient",
    "CoinApiConfig",
    "CoinApiOhlcv",
    "CoinApiResult",
    "CoinApiSource",
    "CoinApiSymbol",
    "PRODUCTION_URL",
    "RateLimitInfo",
    "SANDBOX_URL",
    "format_coinapi_time",
    "is_coinapi_period",
    "parse_coinapi_time",
]
