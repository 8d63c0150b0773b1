"""Column layouts of delimited OHLCV files and well-known presets."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from pathlib import Path

from marketflow.core.exceptions import IngestionError
from marketflow.core.ingestion.timestamps import TimestampFormat

CRYPTO_DATA_DOWNLOAD_MARKER = "cryptodatadownload.com"


@dataclass(frozen=True)
class ColumnSpec:
    """Header names, or regular expressions matching them, for each OHLCV field.

    ``symbol`` may be ``None`` for files that hold a single symbol.
    """

    time: str
    open: str
    high: str
    low: str
    close: str
    volume: str
    symbol: str | None = None
    is_regex: bool = False
    ignore_case: bool = True

    def patterns(self) -> dict[str, str]:
        patterns: dict[str, str] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if item.name not in {"is_regex", "ignore_case"} and value is not None:
                patterns[item.name] = value
        return patterns

    def resolve(self, header: Sequence[str]) -> dict[str, str]:
        """Map each field to the first header column it matches.

        Raises:
            IngestionError: a field matches no column.
        """

        resolved: dict[str, str] = {}
        for name, pattern in self.patterns().items():
            column = next((column for column in header if self._matches(pattern, str(column))), None)
            if column is not None:
                resolved[name] = column

        missing = sorted(set(self.patterns()) - set(resolved))
        if missing:
            raise IngestionError(
                f"The columns for {', '.join(missing)} were not found in the header.",
                details={"missing": missing, "header": [str(column) for column in header]},
            )
        return resolved

    def with_column(self, field_name: str, column: str) -> ColumnSpec:
        """Return a copy that matches ``field_name`` to exactly ``column``."""

        pattern = re.escape(column) if self.is_regex else column
        return replace(self, **{field_name: pattern})

    def _matches(self, pattern: str, column: str) -> bool:
        column = column.strip()
        if self.is_regex:
            flags = re.IGNORECASE if self.ignore_case else 0
            return re.fullmatch(pattern, column, flags) is not None
        if self.ignore_case:
            return pattern.casefold() == column.casefold()
        return pattern == column


@dataclass(frozen=True)
class TabularStreamMetadata:
    """How to read a delimited file of historical OHLCV rows.

    A ``delimiter`` of ``None`` asks the reader to detect it.
    """

    columns: ColumnSpec
    delimiter: str | None = None
    time_format: TimestampFormat = TimestampFormat.ISO8601
    skipped_rows: int = 0


CRYPTO_DATA_DOWNLOAD = TabularStreamMetadata(
    columns=ColumnSpec(
        symbol="symbol",
        time="unix( timestamp)?",
        open="open",
        high="high",
        low="low",
        close="close",
        volume=r"volume( \w+)?",
        is_regex=True,
    ),
    delimiter=",",
    time_format=TimestampFormat.UNIX_EPOCH,
    skipped_rows=1,
)

CRYPTO_TICK = TabularStreamMetadata(
    columns=ColumnSpec(
        symbol="symbol_id",
        time="time_period_start",
        open="px_open",
        high="px_high",
        low="px_low",
        close="px_close",
        volume="sx_sum",
    ),
    delimiter=";",
    time_format=TimestampFormat.ISO8601,
)

PRESETS: dict[str, TabularStreamMetadata] = {
    "cryptodatadownload": CRYPTO_DATA_DOWNLOAD,
    "cryptotick": CRYPTO_TICK,
}


def get_preset(name: str) -> TabularStreamMetadata:
    try:
        return PRESETS[name.strip().lower()]
    except KeyError:
        raise IngestionError(
            f"Unknown preset '{name}'. Expected one of: {', '.join(sorted(PRESETS))}.",
            details={"preset": name},
        ) from None


def detect_metadata(path: Path) -> TabularStreamMetadata:
    """Pick a preset from the first line of ``path``.

    CryptoDataDownload files start with a line carrying their URL; anything
    else is read as CryptoTick.
    """

    try:
        with open(path, encoding="utf-8-sig") as stream:
            first_line = stream.readline()
    except OSError as exc:
        raise IngestionError(f"Unable to read '{path}': {exc}", details={"path": str(path)}) from exc

    if CRYPTO_DATA_DOWNLOAD_MARKER in first_line.lower():
        return CRYPTO_DATA_DOWNLOAD
    return CRYPTO_TICK


__all__ = [
    "CRYPTO_DATA_DOWNLOAD",
    "CRYPTO_TICK",
    "ColumnSpec",
    "PRESETS",
    "TabularStreamMetadata",
    "detect_metadata",
    "get_preset",
]
