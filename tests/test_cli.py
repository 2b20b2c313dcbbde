import pytest

from beanbot import cli
from beanbot.config import BotConfig
from beanbot.cycle import TradingCycle, TradingLoop
from beanbot.execution import TradeExecutor
from beanbot.logging_setup import logger
from beanbot.models import MarketSnapshot, TradeRecord
from beanbot.strategy import BandStrategy, ThresholdStrategy


@pytest.fixture
def reset_logging():
    yield
    logger.remove()


def test_create_strategy_from_config():
    config = BotConfig.default()
    config.strategy.trade_fraction = 0.5
    config.bands.buy_bands = [[30, 0.9]]

    threshold = cli.create_strategy("threshold", config)
    band = cli.create_strategy("band", config)

    assert isinstance(threshold, ThresholdStrategy)
    assert threshold.trade_fraction == 0.5
    assert isinstance(band, BandStrategy)
    assert band.buy_bands == ((30, 0.9),)

    with pytest.raises(ValueError, match="Unknown strategy"):
        cli.create_strategy("martingale", config)


def test_build_loop_shares_one_rate_tracker(store):
    loop = cli.build_loop(BotConfig.default(), "t0ken", store, "band")

    executor = loop.cycle.executor
    assert executor.rate_tracker is executor.adapter.rate_tracker
    assert loop.cycle.cache.adapter is executor.adapter
    assert loop.interval_seconds == 600.0


@pytest.mark.parametrize("cmd", ["summary", "trades"])
def test_missing_database(cmd, tmp_path, capsys):
    assert cli.main([cmd, "--db", str(tmp_path / "missing.sqlite")]) == 1
    assert "Database not found" in capsys.readouterr().out


def test_trades_lists_recent_trades(store, tmp_path, capsys):
    store.insert_trade(TradeRecord(1_000, 50, 100, 20, 0, 1000, 0))
    store.insert_trade(TradeRecord(2_000, 60, 120, 0, 20, 0, 1200))

    assert cli.main(["trades", "--db", str(tmp_path / "market.sqlite"), "--limit", "1"]) == 0

    out = capsys.readouterr().out
    assert "sell" in out
    assert "buy" not in out.split("-" * 72)[1]


def test_trades_empty(store, tmp_path, capsys):
    assert cli.main(["trades", "--db", str(tmp_path / "market.sqlite")]) == 0
    assert "No trades recorded" in capsys.readouterr().out


def test_summary_prints_every_window(store, tmp_path, capsys):
    store.append_snapshot(MarketSnapshot(timestamp=1_000, price=50, owned_units=0, balance=0))

    assert cli.main(["summary", "--db", str(tmp_path / "market.sqlite")]) == 0

    out = capsys.readouterr().out
    for window in ("1h", "12h", "1d", "1w"):
        assert window in out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_run_without_token_fails(tmp_path, monkeypatch, reset_logging):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("BEANBOT_TOKEN", raising=False)
    monkeypatch.setenv("BEANBOT_CONFIG_PATH", str(tmp_path / "missing.json"))

    assert cli.main(["run", "--once"]) == 1


def test_run_once_with_default_config(tmp_path, monkeypatch, market, tracker, sleep, clock, reset_logging):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BEANBOT_TOKEN", "t0ken")
    seen = {}

    def fake_build_loop(config, token, store, strategy_name):
        seen["token"] = token
        seen["strategy"] = strategy_name
        cache = cli.MarketStateCache(market, clock=clock.ms)
        executor = TradeExecutor(market, cache, store, tracker, sleep=sleep, clock=clock.ms)
        strategy = cli.create_strategy(strategy_name, config)
        return TradingLoop(TradingCycle(cache, store, strategy, executor, clock=clock.ms), sleep=sleep)

    monkeypatch.setattr(cli, "build_loop", fake_build_loop)

    assert cli.main(["run", "--once", "--strategy", "band"]) == 0

    assert seen == {"token": "t0ken", "strategy": "band"}
    assert market.order_calls() == [("buy", 16)]
    assert (tmp_path / "market.sqlite").exists()
    assert sleep.delays == []


def test_run_reports_fatal_errors(tmp_path, monkeypatch, reset_logging):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BEANBOT_TOKEN", "t0ken")

    class BrokenLoop:
        def run(self, max_cycles=None):
            raise RuntimeError("boom")

    monkeypatch.setattr(cli, "build_loop", lambda *args: BrokenLoop())

    assert cli.main(["run", "--once"]) == 1
