from __future__ import annotations

import json
from pathlib import Path

from marketflow.cli.main import create_app


def _records(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def _invoke(runner, cli_obj, *args: str, output_format: str = "jsonl"):
    return runner.invoke(
        create_app(), ["--format", output_format, "--log-level", "CRITICAL", "view", *args], obj=cli_obj
    )


def test_flows_are_listed(runner, cli_obj, dataset_file: Path) -> None:
    result = _invoke(runner, cli_obj, str(dataset_file))

    assert result.exit_code == 0, result.output
    rows = {row["symbol"]: row for row in _records(result.output)}
    assert set(rows) == {"BITSTAMP_SPOT_BTC_USD", "KRAKEN_SPOT_ETH_EUR"}
    btc = rows["BITSTAMP_SPOT_BTC_USD"]
    assert (btc["exchange"], btc["base"], btc["quote"]) == ("BITSTAMP", "BTC", "USD")
    assert btc["interval"] == "1 Day"
    assert btc["start"] == "2024-01-01T00:00:00"
    assert btc["points"] == 5
    assert btc["last"] == "2024-01-05T00:00:00"
    assert rows["KRAKEN_SPOT_ETH_EUR"]["start"] is None


def test_last_points(runner, cli_obj, dataset_file: Path) -> None:
    result = _invoke(runner, cli_obj, str(dataset_file), "--points", "2")

    assert result.exit_code == 0, result.output
    points = [row for row in _records(result.output) if "time" in row]
    assert len(points) == 4
    btc_times = [row["time"] for row in points if row["symbol"] == "BITSTAMP_SPOT_BTC_USD"]
    assert btc_times == ["2024-01-04T00:00:00", "2024-01-05T00:00:00"]


def test_term_index(runner, cli_obj, dataset_file: Path) -> None:
    result = _invoke(runner, cli_obj, str(dataset_file), "--index")

    assert result.exit_code == 0, result.output
    records = _records(result.output)
    roles = {row["term"]: row["role"] for row in records}
    assert roles["BITSTAMP_SPOT_BTC_USD"] == "symbol"
    assert roles["BTC"] == "base"
    assert roles["USD"] == "quote"
    assert roles["KRAKEN"] == "exchange"
    indices = [row["index"] for row in records]
    assert indices == sorted(indices)


def test_table_output(runner, cli_obj, dataset_file: Path) -> None:
    result = _invoke(runner, cli_obj, str(dataset_file), "--index", output_format="table")

    assert result.exit_code == 0, result.output
    assert "Terms" in result.output
    assert "BITSTAMP_SPOT_BTC_USD" in result.output


def test_missing_dataset(runner, cli_obj, tmp_path: Path) -> None:
    result = _invoke(runner, cli_obj, str(tmp_path / "missing.duckdb"))

    assert result.exit_code == 40
    assert _records(result.output)[-1]["code"] == "STORAGE_ERROR"
