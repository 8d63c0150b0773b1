"""Dataset merge engine.

Every change goes through a :class:`DatasetBuilder`, which copies what it
touches from an immutable base and commits a new :class:`Dataset`. A merge
that raises leaves the base exactly as it was.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from marketflow.core.exceptions import TermNotFoundError, UnsupportedSymbolTypeError
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.dataset import Dataset
from marketflow.core.models.index import SymbolType
from marketflow.core.models.interval import Interval
from marketflow.core.models.market import MarketFlow, MarketInstant, SymbolIntervalGroup
from marketflow.core.services.flows import FlowBuilder
from marketflow.core.services.intervals import coerce_interval, format_interval
from marketflow.core.services.terms import ReconciliationPolicy, TermIndexBuilder


class DatasetBuilder:
    """Accumulates changes against a base dataset until :meth:`commit`."""

    def __init__(
        self,
        base: Dataset | None = None,
        *,
        policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        self._base = base or Dataset.empty()
        self._policy = policy
        self._diagnostics = diagnostics or get_logger("marketflow.merge")
        self.terms = TermIndexBuilder(self._base.index, diagnostics=self._diagnostics)
        self._groups: dict[int, SymbolIntervalGroup] = dict(self._base.symbols)
        self._edited: dict[int, dict[Interval, MarketFlow]] = {}

    def reconcile(
        self,
        symbol: str,
        base: str,
        quote: str,
        exchange: str,
        *,
        policy: ReconciliationPolicy | None = None,
    ) -> int:
        return self.terms.reconcile(symbol, base, quote, exchange, policy=policy or self._policy)

    def symbol_indices(self) -> list[int]:
        return sorted(set(self._groups) | set(self._edited))

    def intervals(self, symbol_index: int) -> list[Interval]:
        return sorted(self._flows_of(symbol_index))

    def flow(self, symbol_index: int, interval: Interval | str) -> FlowBuilder:
        """Return a working copy of the flow; store it back with :meth:`put_flow`."""

        resolved = coerce_interval(interval)
        existing = self._flows_of(symbol_index).get(resolved)
        label = f"{self._symbol_label(symbol_index)} {format_interval(resolved)}"
        return FlowBuilder(resolved, existing, label=label, diagnostics=self._diagnostics)

    def put_flow(self, symbol_index: int, flow: MarketFlow | FlowBuilder) -> None:
        self.terms.lookup(symbol_index)
        built = flow.build() if isinstance(flow, FlowBuilder) else flow
        self._editable(symbol_index)[built.interval] = built

    def remove_flow(self, symbol_index: int, interval: Interval) -> None:
        flows = self._editable(symbol_index)
        flows.pop(interval, None)

    def remove_symbol(self, symbol_index: int) -> None:
        self._groups.pop(symbol_index, None)
        self._edited.pop(symbol_index, None)
        self.terms.remove_symbol(symbol_index)

    def commit(self) -> Dataset:
        """Validate pending changes and return the resulting dataset."""

        groups = dict(self._groups)
        for symbol_index, flows in self._edited.items():
            groups[symbol_index] = SymbolIntervalGroup(dict(sorted(flows.items())))

        index = self.terms.build()
        for symbol_index in groups:
            if symbol_index not in index.symbols:
                raise TermNotFoundError(symbol_index, {"reason": "symbol data has no metadata"})
        return Dataset(index=index, symbols=dict(sorted(groups.items())))

    def _flows_of(self, symbol_index: int) -> dict[Interval, MarketFlow]:
        if symbol_index in self._edited:
            return self._edited[symbol_index]
        group = self._groups.get(symbol_index)
        return dict(group.flows) if group is not None else {}

    def _editable(self, symbol_index: int) -> dict[Interval, MarketFlow]:
        if symbol_index not in self._edited:
            self._edited[symbol_index] = self._flows_of(symbol_index)
        return self._edited[symbol_index]

    def _symbol_label(self, symbol_index: int) -> str:
        try:
            return self.terms.lookup(symbol_index)
        except TermNotFoundError:
            return f"#{symbol_index}"


def merge(
    base: Dataset | None,
    *,
    symbol: str,
    base_asset: str,
    quote_asset: str,
    exchange: str,
    interval: Interval | str,
    points: Iterable[MarketInstant],
    declared_start: datetime | None = None,
    declared_end: datetime | None = None,
    symbol_type: SymbolType | str = SymbolType.SPOT,
    policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
    diagnostics: Diagnostics | None = None,
) -> Dataset:
    """Merge ``points`` for one (symbol, interval) into ``base`` and return the new dataset.

    Re-running a merge with the same inputs against the same base yields an
    equal dataset.

    Raises:
        InvalidIntervalError: ``interval`` is malformed.
        UnsupportedSymbolTypeError: the symbol is not a spot symbol.
        RangeNarrowingError: a declared bound would narrow existing coverage.
        InvalidRangeError: the resulting bounds are inconsistent with the points.
    """

    resolved_interval = coerce_interval(interval)
    try:
        resolved_type = SymbolType.from_text(symbol_type) if isinstance(symbol_type, str) else symbol_type
    except ValueError:
        raise UnsupportedSymbolTypeError(
            f"Symbol {symbol} has unknown type {symbol_type!r}.", symbol=symbol, symbol_type=str(symbol_type)
        ) from None
    if resolved_type is not SymbolType.SPOT:
        raise UnsupportedSymbolTypeError(
            f"Symbol {symbol} has type {resolved_type.value}; only SPOT symbols can be merged.",
            symbol=symbol,
            symbol_type=resolved_type.value,
        )

    builder = DatasetBuilder(base, policy=policy, diagnostics=diagnostics)
    symbol_index = builder.reconcile(symbol, base_asset, quote_asset, exchange)
    flow = builder.flow(symbol_index, resolved_interval)
    flow.upsert(points)
    flow.widen(declared_start, declared_end)
    builder.put_flow(symbol_index, flow)
    return builder.commit()


__all__ = ["DatasetBuilder", "merge"]
