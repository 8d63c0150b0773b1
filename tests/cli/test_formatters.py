from __future__ import annotations

import io
import json
from datetime import datetime
from pathlib import Path

import pytest

from marketflow.cli.formatters import JSONLFormatter, TableFormatter, create_formatter
from marketflow.cli.main import create_app
from marketflow.cli.utils import exit_code_for
from marketflow.core.exceptions import (
    AggregationError,
    AggregationTimeoutError,
    ConfigurationError,
    FilterSpecError,
    MarketFlowError,
    RateLimitError,
    StorageError,
)
from marketflow.core.services.scheduler import AggregationMode


def test_jsonl_formatter_selects_columns_and_serializes_times() -> None:
    stream = io.StringIO()
    rows = [{"symbol": "BITSTAMP_SPOT_BTC_USD", "first": datetime(2024, 1, 1), "ignored": 1}]

    JSONLFormatter().render(rows, stream=stream, columns=["symbol", "first"])

    assert json.loads(stream.getvalue()) == {"symbol": "BITSTAMP_SPOT_BTC_USD", "first": "2024-01-01T00:00:00"}


def test_table_formatter_renders_times() -> None:
    stream = io.StringIO()

    TableFormatter(no_color=True).render(
        [{"symbol": "BTC", "start": None, "first": datetime(2024, 1, 1)}], stream=stream, title="Flows"
    )

    output = stream.getvalue()
    assert "Flows" in output
    assert "2024-01-01 00:00:00" in output


def test_table_formatter_shortens_prices_and_counts_rows() -> None:
    stream = io.StringIO()
    rows = [
        {"symbol": "BTC", "close": 42150.123456789, "mode": AggregationMode.FILL},
        {"symbol": "ETH", "close": 2.5, "mode": AggregationMode.APPEND},
    ]

    TableFormatter(no_color=True).render(rows, stream=stream)

    output = stream.getvalue()
    assert "42150.123" in output
    assert "42150.1234" not in output
    assert "fill" in output
    assert "AggregationMode" not in output
    assert "2 rows" in output


def test_table_formatter_without_rows() -> None:
    stream = io.StringIO()

    TableFormatter(no_color=True).render([], stream=stream, columns=["symbol"])

    assert "No data available." in stream.getvalue()


def test_create_formatter() -> None:
    assert isinstance(create_formatter(" JSONL "), JSONLFormatter)
    assert create_formatter("table", no_color=True).no_color is True
    with pytest.raises(ValueError, match="Unsupported format"):
        create_formatter("xml")


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (AggregationTimeoutError("slow", "BTC", "1DAY", 1.0), 50),
        (AggregationError("failed", "BTC", "1DAY"), 20),
        (RateLimitError("quota", "coinapi"), 20),
        (StorageError("locked"), 40),
        (FilterSpecError("bad spec"), 10),
        (ConfigurationError("no key"), 10),
        (MarketFlowError("unknown"), 30),
    ],
)
def test_exit_codes(error: Exception, code: int) -> None:
    assert exit_code_for(error) == code


def test_unknown_format_is_a_usage_error(runner, cli_obj, tmp_path: Path) -> None:
    result = runner.invoke(create_app(), ["--format", "xml", "view", str(tmp_path)], obj=cli_obj)

    assert result.exit_code == 2


def test_output_option_writes_to_a_file(runner, cli_obj, dataset_file: Path, tmp_path: Path) -> None:
    target = tmp_path / "flows.jsonl"

    result = runner.invoke(
        create_app(),
        ["--format", "jsonl", "--output", str(target), "view", str(dataset_file)],
        obj=cli_obj,
    )

    assert result.exit_code == 0, result.output
    assert len(target.read_text(encoding="utf-8").splitlines()) == 2


def test_unknown_log_level_is_a_usage_error(runner, cli_obj, dataset_file: Path) -> None:
    result = runner.invoke(create_app(), ["--log-level", "chatty", "view", str(dataset_file)], obj=cli_obj)

    assert result.exit_code == 2
