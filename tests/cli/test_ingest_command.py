from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from marketflow.cli.main import create_app
from marketflow.core.models import Denomination, Interval
from marketflow.core.storage import DuckDBDatasetStorage

CDD_CONTENT = """https://www.CryptoDataDownload.com
unix,date,symbol,open,high,low,close,Volume BTC,Volume USD
1704240000,2024-01-03 00:00:00,BTC/USD,3,4,2,3.5,30,105
1704153600,2024-01-02 00:00:00,BTC/USD,2,3,1,2.5,20,50
1704067200,2024-01-01 00:00:00,BTC/USD,1,2,0.5,1.5,10,15
"""


def _records(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    path = tmp_path / "Bitstamp_BTCUSD_d.csv"
    path.write_text(CDD_CONTENT, encoding="utf-8")
    return path


def _invoke(runner: CliRunner, cli_obj, source_file: Path, dataset: Path, *extra: str):
    args = [
        "--format",
        "jsonl",
        "--log-level",
        "CRITICAL",
        "ingest",
        str(source_file),
        "--symbol",
        "BITSTAMP_SPOT_BTC_USD",
        "--base",
        "BTC",
        "--quote",
        "USD",
        "--exchange",
        "BITSTAMP",
        "--interval",
        "1DAY",
        "--dataset",
        str(dataset),
        *extra,
    ]
    return runner.invoke(create_app(), args, obj=cli_obj)


def test_ingest_detects_the_layout_and_stores_rows(runner, cli_obj, source_file: Path, tmp_path: Path) -> None:
    dataset = tmp_path / "market.duckdb"

    result = _invoke(runner, cli_obj, source_file, dataset)

    assert result.exit_code == 0, result.output
    summary = _records(result.output)[0]
    assert summary["rows"] == 3
    assert summary["batches"] == 1
    assert summary["points_stored"] == 3
    flow = DuckDBDatasetStorage().extract(dataset).symbol_flow("BITSTAMP_SPOT_BTC_USD", Interval(Denomination.DAYS, 1))
    assert [point.close for point in flow.points] == [1.5, 2.5, 3.5]


def test_time_range_and_source_symbol(runner, cli_obj, source_file: Path, tmp_path: Path) -> None:
    dataset = tmp_path / "market.duckdb"

    result = _invoke(
        runner,
        cli_obj,
        source_file,
        dataset,
        "--preset",
        "cryptodatadownload",
        "--source-symbol",
        "btc/usd",
        "--start",
        "2024-01-02",
    )

    assert result.exit_code == 0, result.output
    assert _records(result.output)[0]["rows"] == 2


def test_unknown_preset(runner, cli_obj, source_file: Path, tmp_path: Path) -> None:
    result = _invoke(runner, cli_obj, source_file, tmp_path / "market.duckdb", "--preset", "kaggle")

    assert result.exit_code == 10
    assert _records(result.output)[-1]["code"] == "INGESTION_ERROR"


def test_malformed_rows(runner, cli_obj, source_file: Path, tmp_path: Path) -> None:
    source_file.write_text(CDD_CONTENT.replace(",2,3,1,2.5,", ",two,3,1,2.5,"), encoding="utf-8")
    dataset = tmp_path / "market.duckdb"

    result = _invoke(runner, cli_obj, source_file, dataset)

    assert result.exit_code == 10
    assert _records(result.output)[-1]["details"]["row"] == 4
    assert not dataset.exists()


def test_missing_input_file(runner, cli_obj, tmp_path: Path) -> None:
    result = _invoke(runner, cli_obj, tmp_path / "missing.csv", tmp_path / "market.duckdb")

    assert result.exit_code == 2
