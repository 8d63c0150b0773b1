"""Dataset aggregate root."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from marketflow.core.models.index import TermIndex
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import MarketFlow, SymbolIntervalGroup


@dataclass(frozen=True)
class Dataset:
    """Term index plus the flows of every indexed symbol.

    Values are never mutated; see ``DatasetBuilder`` for producing new ones.
    """

    index: TermIndex = field(default_factory=TermIndex)
    symbols: Mapping[int, SymbolIntervalGroup] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> Dataset:
        return cls(TermIndex(), {})

    @property
    def is_empty(self) -> bool:
        return not self.index.terms and not self.symbols

    def flow(self, symbol_index: int, interval: Interval) -> MarketFlow | None:
        group = self.symbols.get(symbol_index)
        return group.get(interval) if group is not None else None

    def symbol_flow(self, symbol: str, interval: Interval) -> MarketFlow | None:
        index = self.index.index_of(symbol)
        if index is None:
            return None
        return self.flow(index, interval)

    def iter_flows(self) -> Iterator[tuple[str, MarketFlow]]:
        """Yield ``(symbol name, flow)`` pairs ordered by symbol index then interval."""

        for symbol_index in sorted(self.symbols):
            name = self.index.name_of(symbol_index) or str(symbol_index)
            group = self.symbols[symbol_index]
            for interval in group.intervals():
                yield name, group.flows[interval]


__all__ = ["Dataset"]
