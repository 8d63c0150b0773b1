"""Term index builder and symbol metadata reconciliation."""

from __future__ import annotations

from enum import Enum

from marketflow.core.exceptions import (
    SymbolMetadataConflictError,
    TermNotFoundError,
    UnsupportedSymbolTypeError,
)
from marketflow.core.logging import Diagnostics, get_logger
from marketflow.core.models.index import SymbolMetadata, SymbolType, TermIndex


class ReconciliationPolicy(str, Enum):
    """How stored symbol metadata that disagrees with a new resolution is handled."""

    SELF_HEALING = "self_healing"
    STRICT = "strict"


class TermIndexBuilder:
    """Mutable working copy of a :class:`TermIndex`.

    The base index is copied on construction and never touched; ``build``
    returns a new immutable index.
    """

    def __init__(self, base: TermIndex | None = None, *, diagnostics: Diagnostics | None = None) -> None:
        base = base or TermIndex()
        self._terms: dict[str, int] = dict(base.terms)
        self._names: dict[int, str] = {index: name for name, index in self._terms.items()}
        self._symbols: dict[int, SymbolMetadata] = dict(base.symbols)
        self._diagnostics = diagnostics or get_logger("marketflow.terms")

    def __contains__(self, name: object) -> bool:
        return name in self._terms

    def __len__(self) -> int:
        return len(self._terms)

    def resolve(self, name: str) -> int:
        """Return the index of ``name``, allocating ``max + 1`` when unknown."""

        index = self._terms.get(name)
        if index is not None:
            return index
        index = max(self._names) + 1 if self._names else 0
        self._terms[name] = index
        self._names[index] = name
        return index

    def lookup(self, index: int) -> str:
        try:
            return self._names[index]
        except KeyError:
            raise TermNotFoundError(index) from None

    def index_of(self, name: str) -> int | None:
        return self._terms.get(name)

    def metadata(self, symbol_index: int) -> SymbolMetadata | None:
        return self._symbols.get(symbol_index)

    def symbol_indices(self) -> list[int]:
        return sorted(self._symbols)

    def reconcile(
        self,
        symbol: str,
        base: str,
        quote: str,
        exchange: str,
        *,
        policy: ReconciliationPolicy = ReconciliationPolicy.SELF_HEALING,
    ) -> int:
        """Resolve ``symbol`` and make its metadata agree with the given assets.

        Under the self-healing policy a disagreeing or non-spot record is
        overwritten with a warning; under the strict policy it raises.
        """

        symbol_index = self.resolve(symbol)
        base_index = self.resolve(base)
        quote_index = self.resolve(quote)
        exchange_index = self.resolve(exchange)

        expected = SymbolMetadata(
            held_asset=quote_index,
            traded_asset=base_index,
            exchange=exchange_index,
            type=SymbolType.SPOT,
        )
        existing = self._symbols.get(symbol_index)
        if existing is None:
            self._symbols[symbol_index] = expected
            return symbol_index
        if existing == expected:
            return symbol_index

        if policy is ReconciliationPolicy.STRICT:
            if existing.type is not SymbolType.SPOT:
                raise UnsupportedSymbolTypeError(
                    f"Symbol {symbol} is stored as {existing.type.value}; only SPOT symbols are supported.",
                    symbol=symbol,
                    symbol_type=existing.type.value,
                )
            raise SymbolMetadataConflictError(
                f"Stored metadata for symbol {symbol} ({self._describe(existing)}) does not match "
                f"the resolved metadata ({self._describe(expected)}).",
                symbol=symbol,
            )

        self._diagnostics.warning(
            f"Metadata for symbol {symbol} ({self._describe(existing)}) does not match the resolved "
            f"metadata ({self._describe(expected)}); overwriting."
        )
        self._symbols[symbol_index] = expected
        return symbol_index

    def remove_symbol(self, symbol_index: int) -> None:
        """Drop a symbol and garbage-collect terms nothing references anymore."""

        metadata = self._symbols.pop(symbol_index, None)
        candidates = [symbol_index]
        if metadata is not None:
            candidates.extend(metadata.references())

        referenced = self._referenced_indices()
        for index in dict.fromkeys(candidates):
            if index in referenced or index in self._symbols:
                continue
            name = self._names.pop(index, None)
            if name is not None:
                del self._terms[name]

    def build(self) -> TermIndex:
        terms = {name: index for index, name in sorted(self._names.items())}
        symbols = dict(sorted(self._symbols.items()))
        return TermIndex(terms=terms, symbols=symbols)

    def _referenced_indices(self) -> set[int]:
        referenced: set[int] = set()
        for metadata in self._symbols.values():
            referenced.update(metadata.references())
        return referenced

    def _describe(self, metadata: SymbolMetadata) -> str:
        def name(index: int) -> str:
            return self._names.get(index, f"#{index}")

        return (
            f"base={name(metadata.traded_asset)}, quote={name(metadata.held_asset)}, "
            f"exchange={name(metadata.exchange)}, type={metadata.type.value}"
        )


__all__ = ["ReconciliationPolicy", "TermIndexBuilder"]
