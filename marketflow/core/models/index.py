"""Term index models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class SymbolType(str, Enum):
    """交易品种类型枚举."""

    SPOT = "SPOT"
    FUTURES = "FUTURES"
    OPTION = "OPTION"
    PERPETUAL = "PERPETUAL"
    INDEX = "INDEX"
    CREDIT = "CREDIT"

    @classmethod
    def from_text(cls, value: str) -> SymbolType:
        return cls(value.strip().upper())


@dataclass(frozen=True)
class SymbolMetadata:
    """Which assets and exchange a symbol index refers to."""

    held_asset: int
    traded_asset: int
    exchange: int
    type: SymbolType = SymbolType.SPOT

    def references(self) -> tuple[int, int, int]:
        return (self.held_asset, self.traded_asset, self.exchange)


@dataclass(frozen=True)
class TermIndex:
    """Names mapped to compact integer indices plus per-symbol metadata."""

    terms: Mapping[str, int] = field(default_factory=dict)
    symbols: Mapping[int, SymbolMetadata] = field(default_factory=dict)
    _names: Mapping[int, str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_names", {index: name for name, index in self.terms.items()})

    def index_of(self, name: str) -> int | None:
        return self.terms.get(name)

    def name_of(self, index: int) -> str | None:
        return self._names.get(index)

    def __len__(self) -> int:
        return len(self.terms)


__all__ = ["SymbolType", "SymbolMetadata", "TermIndex"]
