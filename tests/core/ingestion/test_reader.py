from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from marketflow.core.exceptions import IngestionError
from marketflow.core.ingestion import (
    CRYPTO_DATA_DOWNLOAD,
    CRYPTO_TICK,
    ColumnSpec,
    TabularStreamMetadata,
    TimestampFormat,
    read_historical,
)
from marketflow.core.models import MarketInstant, TimeRange

CDD_CONTENT = """https://www.CryptoDataDownload.com
unix,date,symbol,open,high,low,close,Volume BTC,Volume USD
1704326400,2024-01-04 00:00:00,BTC/USD,4,5,3,4.5,40,180
1704240000,2024-01-03 00:00:00,BTC/USD,3,4,2,3.5,30,105
1704153600,2024-01-02 00:00:00,BTC/USD,2,3,1,2.5,20,50
1704067200,2024-01-01 00:00:00,BTC/USD,1,2,0.5,1.5,10,15
"""

TICK_CONTENT = """time_period_start;time_period_end;px_open;px_high;px_low;px_close;sx_sum;symbol_id
2024-01-01T00:00:00.0000000Z;2024-01-02T00:00:00.0000000Z;1;2;0.5;1.5;10;BITSTAMP_SPOT_BTC_USD
2024-01-01T00:00:00.0000000Z;2024-01-02T00:00:00.0000000Z;7;8;6;7.5;70;KRAKEN_SPOT_ETH_EUR
2024-01-02T00:00:00.0000000Z;2024-01-03T00:00:00.0000000Z;2;3;1;2.5;20;bitstamp_spot_btc_usd
2024-01-02T00:00:00.0000000Z;2024-01-03T00:00:00.0000000Z;8;9;7;8.5;80;KRAKEN_SPOT_ETH_EUR
"""


@pytest.fixture
def cdd_file(tmp_path: Path) -> Path:
    path = tmp_path / "Bitstamp_BTCUSD_d.csv"
    path.write_text(CDD_CONTENT, encoding="utf-8")
    return path


@pytest.fixture
def tick_file(tmp_path: Path) -> Path:
    path = tmp_path / "ohlcv.csv"
    path.write_text(TICK_CONTENT, encoding="utf-8")
    return path


def test_reads_cryptodatadownload_rows(cdd_file: Path) -> None:
    rows = list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD))

    assert [row.time for row in rows] == [datetime(2024, 1, day) for day in (4, 3, 2, 1)]
    first = rows[0]
    assert first.symbol == "BTC/USD"
    assert (first.open, first.high, first.low, first.close, first.volume) == (4.0, 5.0, 3.0, 4.5, 40.0)
    assert first.to_instant() == MarketInstant(
        time=datetime(2024, 1, 4), open=4.0, high=5.0, low=3.0, close=4.5, volume=40.0
    )


def test_reads_cryptotick_rows(tick_file: Path) -> None:
    rows = list(read_historical(tick_file, CRYPTO_TICK))

    assert len(rows) == 4
    assert rows[1].symbol == "KRAKEN_SPOT_ETH_EUR"
    assert rows[1].time == datetime(2024, 1, 1)


def test_symbol_filter(tick_file: Path) -> None:
    rows = list(
        read_historical(tick_file, CRYPTO_TICK, symbol_filter=lambda symbol: symbol.upper() == "BITSTAMP_SPOT_BTC_USD")
    )

    assert [row.close for row in rows] == [1.5, 2.5]


def test_time_range_and_limit(cdd_file: Path) -> None:
    window = TimeRange(datetime(2024, 1, 2), datetime(2024, 1, 3))

    assert [row.time.day for row in read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD, time_range=window)] == [3, 2]
    assert [row.time.day for row in read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD, entry_limit=3)] == [4, 3, 2]
    assert list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD, entry_limit=0)) == []


def test_small_chunks_give_the_same_rows(cdd_file: Path) -> None:
    whole = list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD))

    assert list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD, chunk_size=1)) == whole


def test_reading_again_starts_over(cdd_file: Path) -> None:
    first = list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD, entry_limit=2))
    second = list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD, entry_limit=2))

    assert first == second


def test_nothing_is_read_until_iteration(tmp_path: Path) -> None:
    rows = read_historical(tmp_path / "missing.csv", CRYPTO_TICK)

    with pytest.raises(IngestionError):
        next(rows)


def test_delimiter_detection(tmp_path: Path) -> None:
    path = tmp_path / "single.tsv"
    path.write_text("time\topen\thigh\tlow\tclose\tvolume\n1704067200000\t1\t2\t0.5\t1.5\t10\n", encoding="utf-8")
    metadata = TabularStreamMetadata(
        columns=ColumnSpec(time="time", open="open", high="high", low="low", close="close", volume="volume"),
        time_format=TimestampFormat.UNIX_EPOCH_MILLIS,
    )

    rows = list(read_historical(path, metadata))

    assert len(rows) == 1
    assert rows[0].time == datetime(2024, 1, 1)
    assert rows[0].symbol is None


def test_missing_columns(tmp_path: Path) -> None:
    path = tmp_path / "ohlcv.csv"
    path.write_text("time_period_start;px_open\n2024-01-01;1\n", encoding="utf-8")

    with pytest.raises(IngestionError, match="were not found"):
        list(read_historical(path, CRYPTO_TICK))


def test_malformed_numbers_name_the_row(cdd_file: Path) -> None:
    cdd_file.write_text(CDD_CONTENT.replace(",3,4,2,3.5,", ",three,4,2,3.5,"), encoding="utf-8")

    with pytest.raises(IngestionError) as exc_info:
        list(read_historical(cdd_file, CRYPTO_DATA_DOWNLOAD))

    assert exc_info.value.details["row"] == 4
    assert "open" in exc_info.value.message


def test_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")

    with pytest.raises(IngestionError, match="no header"):
        list(read_historical(path, CRYPTO_TICK))
