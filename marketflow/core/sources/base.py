"""Data source contract consumed by the download scheduler."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, field_validator

from marketflow.core.models.index import SymbolType
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import MarketInstant
from marketflow.core.services.intervals import to_naive_utc


class SymbolResolution(BaseModel):
    """交易品种解析结果."""

    model_config = ConfigDict(frozen=True)

    symbol_id: str
    base: str
    quote: str
    exchange: str
    symbol_type: SymbolType = SymbolType.SPOT


class HistoricalPoint(BaseModel):
    """单个历史OHLCV数据点."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    trades: int = 0

    @field_validator("time")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    def to_instant(self) -> MarketInstant:
        return MarketInstant(
            time=self.time,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
        )


@runtime_checkable
class DataSource(Protocol):
    """Remote provider of symbol metadata and historical OHLCV pages.

    Implementations raise :class:`~marketflow.core.exceptions.SourceError`
    subclasses on failure and never retry on their own.
    """

    name: str
    limit_request_factor: int

    def to_source_notation(self, interval: Interval) -> str: ...

    async def resolve_symbol(self, api_key: str, exchange: str, base: str, quote: str) -> SymbolResolution: ...

    async def fetch_historical(
        self,
        api_key: str,
        symbol_id: str,
        interval_notation: str,
        start: datetime,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[HistoricalPoint]: ...


__all__ = ["DataSource", "HistoricalPoint", "SymbolResolution"]
