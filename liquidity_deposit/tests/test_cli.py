"""Tests for the offline liquidity-deposit CLI commands."""

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

import liquidity_deposit.core.config as config
from liquidity_deposit.cli import cli

CONFIG = {
    "liquidity": {
        "tick_spacing": 60,
        "tokens": {
            "A": {"address": "0x1111111111111111111111111111111111111111", "decimals": 18},
            "B": {"address": "0x3333333333333333333333333333333333333333", "decimals": 18},
        },
    }
}


@pytest.fixture
def config_file(tmp_path: Path) -> str:
    original = copy.deepcopy(config.CONFIG)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG))
    yield str(path)
    config.set_config(original)


def _invoke(config_file: str, *args: str):
    result = CliRunner().invoke(cli, ["--config", config_file, *args])
    return result, (json.loads(result.output) if result.output.strip() else None)


def test_tick_to_price(config_file):
    result, body = _invoke(config_file, "tick-to-price", "0", "--base", "A", "--quote", "B")
    assert result.exit_code == 0
    assert body["result"]["price"] == pytest.approx(1.0)

    _, inverted = _invoke(
        config_file, "tick-to-price", "6932", "--base", "B", "--quote", "A"
    )
    assert inverted["result"]["price"] == pytest.approx(0.5, rel=1e-3)


def test_price_to_tick_rounds_to_spacing(config_file):
    result, body = _invoke(config_file, "price-to-tick", "2", "--base", "A", "--quote", "B")
    assert result.exit_code == 0
    assert body["result"]["tick"] == pytest.approx(6931.8, abs=0.1)
    assert body["result"]["usable_tick"] == 6960


def test_price_to_tick_rejects_non_positive(config_file):
    result, body = _invoke(config_file, "price-to-tick", "0", "--base", "A", "--quote", "B")
    assert result.exit_code == 1
    assert body["ok"] is False


def test_preset_around_center_tick(config_file):
    result, body = _invoke(
        config_file, "preset", "±3%", "--base", "A", "--quote", "B", "--center-tick", "0"
    )
    assert result.exit_code == 0
    summary = body["result"]
    assert (summary["tick_lower"], summary["tick_upper"]) == (-300, 240)
    assert summary["percent_below"] > 0
    assert summary["percent_above"] > 0
    assert summary["price_unit"] == "B per A"


def test_preset_too_narrow_fails(config_file):
    result, body = _invoke(
        config_file,
        "preset",
        "±0.001%",
        "--base",
        "A",
        "--quote",
        "B",
        "--center-tick",
        "0",
        "--spacing",
        "200",
    )
    assert result.exit_code == 1
    assert "narrower" in body["error"]


def test_preset_rejects_non_numeric_center_price(config_file):
    result, body = _invoke(
        config_file, "preset", "±5%", "--base", "A", "--quote", "B", "--center-price", "abc"
    )
    assert result.exit_code == 1
    assert body["ok"] is False
    assert "Invalid price" in body["error"]


def test_full_range_flags_limits(config_file):
    result, body = _invoke(config_file, "preset", "full range", "--base", "A", "--quote", "B")
    assert result.exit_code == 0
    assert body["result"]["lower_at_limit"] is True
    assert body["result"]["upper_at_limit"] is True


def test_range_info_from_prices(config_file):
    result, body = _invoke(
        config_file,
        "range-info",
        "--base",
        "A",
        "--quote",
        "B",
        "--min-price",
        "0.5",
        "--max-price",
        "2",
    )
    assert result.exit_code == 0
    assert (body["result"]["tick_lower"], body["result"]["tick_upper"]) == (-6960, 6960)


def test_range_info_rejects_unaligned_ticks(config_file):
    result, body = _invoke(
        config_file, "range-info", "--base", "A", "--quote", "B", "--lower", "-61", "--upper", "60"
    )
    assert result.exit_code == 1
    assert "spacing" in body["error"]


def test_unknown_token_is_usage_error(config_file):
    result = CliRunner().invoke(
        cli, ["--config", config_file, "tick-to-price", "0", "--base", "X", "--quote", "B"]
    )
    assert result.exit_code == 2
