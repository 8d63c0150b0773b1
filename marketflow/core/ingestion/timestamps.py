"""Timestamp formats found in delimited market data files."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from enum import Enum

from marketflow.core.exceptions import IngestionError
from marketflow.core.services.intervals import to_naive_utc

_EPOCH = datetime(1970, 1, 1)
# Data vendors write up to seven fractional digits; datetime keeps six.
_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")
# Ten digit values are epoch seconds, thirteen digit values epoch milliseconds.
_SECONDS_CEILING = 10_000_000_000
_MILLISECONDS_CEILING = 10_000_000_000_000


class TimestampFormat(str, Enum):
    """时间戳格式枚举."""

    UNIX_EPOCH = "unix"
    UNIX_EPOCH_MILLIS = "unix_ms"
    ISO8601 = "iso8601"

    def parse(self, value: str) -> datetime:
        """Parse ``value`` into a naive UTC datetime."""

        text = value.strip()
        if not text:
            raise IngestionError("Cannot parse an empty timestamp.", details={"format": self.value})

        if self is TimestampFormat.ISO8601:
            try:
                return to_naive_utc(datetime.fromisoformat(_FRACTION_PATTERN.sub(r"\1", text)))
            except ValueError as exc:
                raise IngestionError(
                    f"'{value}' is not an ISO-8601 timestamp.", details={"format": self.value}
                ) from exc

        ticks = _parse_ticks(text, self)
        if self is TimestampFormat.UNIX_EPOCH_MILLIS:
            return _EPOCH + timedelta(milliseconds=ticks)
        if ticks < _SECONDS_CEILING:
            return _EPOCH + timedelta(seconds=ticks)
        if ticks < _MILLISECONDS_CEILING:
            return _EPOCH + timedelta(milliseconds=ticks)
        raise IngestionError(
            f"The Unix timestamp {value} is too large to be epoch seconds or milliseconds.",
            details={"format": self.value},
        )


def _parse_ticks(text: str, time_format: TimestampFormat) -> int:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError) as exc:
        raise IngestionError(
            f"'{text}' is not a Unix timestamp.", details={"format": time_format.value}
        ) from exc


__all__ = ["TimestampFormat"]
