"""Tests for the grid-replay command line."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import structlog

from grid_replay import cli
from grid_replay.exceptions import ConfigurationError
from grid_replay.persistence.candle_store import CandleStore
from tests.conftest import make_series


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "strategy.yaml"
    path.write_text(
        "strategy:\n"
        "  grid_range: '0.05'\n"
        "  order_qty: 2\n"
        "  order_dollar_value: '10'\n"
        "  initial_amount: '100'\n"
        "  comm: '0'\n"
        "  take_profit_percent: null\n"
    )
    return path


@pytest.fixture
def candle_file(tmp_path):
    store = CandleStore(tmp_path)
    return store.save(make_series(["100", "102.50"]), tmp_path / "candles.json")


class TestRunCommand:

    def test_run_from_cached_candles(self, config_file, candle_file, tmp_path, capsys):
        result = tmp_path / "out" / "result.json"
        code = cli.main([
            "run",
            "--config", str(config_file),
            "--candles", str(candle_file),
            "--result", str(result),
        ])

        assert code == 0
        out = capsys.readouterr().out
        assert "Strategy results for BTCUSDT" in out
        assert "$90.50" in out

        record = json.loads(result.read_text())
        assert record["summary"]["total_profit"] == "0.25"
        assert record["summary"]["total_trades"] == 2

    def test_run_without_input_fails(self, config_file):
        assert cli.main(["run", "--config", str(config_file)]) == 1

    def test_run_with_missing_config_fails(self, tmp_path, candle_file):
        code = cli.main(["run", "--config", str(tmp_path / "nope.yaml"), "--candles", str(candle_file)])
        assert code == 1

    def test_run_fetches_and_saves(self, config_file, tmp_path, monkeypatch):
        candles = make_series(["100", "102.50"])
        fetch = AsyncMock(return_value=candles)
        monkeypatch.setattr(cli, "download_candles", fetch)
        saved = tmp_path / "fetched.csv"

        code = cli.main([
            "run",
            "--config", str(config_file),
            "--start", "2024-11-15",
            "--end", "2024-11-16",
            "--save-candles", str(saved),
        ])

        assert code == 0
        assert CandleStore(tmp_path).load(saved) == candles
        assert fetch.await_args.args[:4] == ("BTCUSDT", "1m", "2024-11-15", "2024-11-16")


    def test_run_with_malformed_candles_fails(self, config_file, tmp_path):
        bad = tmp_path / "bad.json"
        record = make_series(["100"])[0].to_dict()
        record["close"] = "NaN"
        bad.write_text(json.dumps([record]))

        assert cli.main(["run", "--config", str(config_file), "--candles", str(bad)]) == 1


class TestDownloadCommand:

    def test_download_writes_cache(self, tmp_path, monkeypatch, capsys):
        candles = make_series(["100", "101"])
        fetch = AsyncMock(return_value=candles)
        monkeypatch.setattr(cli, "download_candles", fetch)

        code = cli.main([
            "download",
            "--symbol", "ETHUSDT",
            "--interval", "1h",
            "--start", "2024-11-15",
            "--end", "2024-11-16",
            "--data-dir", str(tmp_path),
            "--max-attempts", "0",
        ])

        assert code == 0
        expected = tmp_path / "ETHUSDT_1h_2024-11-15_2024-11-16.json"
        assert expected.exists()
        assert "Saved 2 candles" in capsys.readouterr().out
        assert fetch.await_args.kwargs["retry_policy"].max_attempts is None

    def test_download_binds_symbol_and_interval(self, tmp_path, monkeypatch):
        seen = {}

        async def fake_download(*args, **kwargs):
            seen.update(structlog.contextvars.get_contextvars())
            return make_series(["100"])

        monkeypatch.setattr(cli, "download_candles", fake_download)

        code = cli.main([
            "download",
            "--symbol", "ETHUSDT",
            "--interval", "1h",
            "--start", "2024-11-15",
            "--end", "2024-11-16",
            "--data-dir", str(tmp_path),
        ])

        assert code == 0
        assert seen["symbol"] == "ETHUSDT"
        assert seen["interval"] == "1h"
        assert seen["command"] == "download"
        assert "symbol" not in structlog.contextvars.get_contextvars()


class TestDownloadCandles:

    @pytest.mark.asyncio
    async def test_rejects_inverted_range(self):
        with pytest.raises(ConfigurationError):
            await cli.download_candles("BTCUSDT", "1m", "2024-11-16", "2024-11-15")

    @pytest.mark.asyncio
    async def test_rejects_bad_date(self):
        with pytest.raises(ConfigurationError):
            await cli.download_candles("BTCUSDT", "1m", "yesterday", "2024-11-15")

    @pytest.mark.asyncio
    async def test_uses_client_factory(self):
        candles = make_series(["100"])
        client = AsyncMock()
        client.__aenter__.return_value = client
        client.fetch_candles.return_value = candles

        result = await cli.download_candles(
            "BTCUSDT", "1m", "2024-11-15", "2024-11-16",
            client_factory=lambda: client,
        )

        assert result == candles
        assert client.fetch_candles.await_args.args[2] == 1731628800000
        client.__aexit__.assert_awaited_once()
        assert result[0].close == Decimal("100")
