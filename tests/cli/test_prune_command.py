from __future__ import annotations

import json
from pathlib import Path

from marketflow.cli.main import create_app
from marketflow.core.storage import DuckDBDatasetStorage


def _records(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def _invoke(runner, cli_obj, *args: str):
    return runner.invoke(create_app(), ["--format", "jsonl", "--log-level", "CRITICAL", "prune", *args], obj=cli_obj)


def test_exclude_a_symbol_in_place(runner, cli_obj, dataset_file: Path) -> None:
    result = _invoke(runner, cli_obj, str(dataset_file), "--exclude", "Symbol:KRAKEN_SPOT_ETH_EUR")

    assert result.exit_code == 0, result.output
    assert _records(result.output)[0] == {"dataset": str(dataset_file), "symbols": 1, "flows": 1, "points": 5}
    stored = DuckDBDatasetStorage().extract(dataset_file)
    assert "KRAKEN" not in stored.index.terms


def test_include_a_time_range_into_a_new_file(runner, cli_obj, dataset_file: Path, tmp_path: Path) -> None:
    output = tmp_path / "pruned.duckdb"

    result = _invoke(
        runner,
        cli_obj,
        str(dataset_file),
        "--include",
        "T:[2024-01-02,2024-01-03]",
        "--output",
        str(output),
    )

    assert result.exit_code == 0, result.output
    assert _records(result.output)[0]["points"] == 2
    original = DuckDBDatasetStorage().extract(dataset_file)
    assert sum(len(flow) for _, flow in original.iter_flows()) == 8


def test_malformed_spec(runner, cli_obj, dataset_file: Path) -> None:
    result = _invoke(runner, cli_obj, str(dataset_file), "--include", "Q:BTC")

    assert result.exit_code == 10
    payload = _records(result.output)[-1]
    assert payload["code"] == "FILTER_SPEC_ERROR"
    assert payload["details"]["spec"] == "Q:BTC"


def test_missing_dataset(runner, cli_obj, tmp_path: Path) -> None:
    result = _invoke(runner, cli_obj, str(tmp_path / "missing.duckdb"))

    assert result.exit_code == 40
    assert _records(result.output)[-1]["code"] == "STORAGE_ERROR"
