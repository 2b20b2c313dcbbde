"""Command line entry point.

Usage:
    beanbot run --config config.yaml [--strategy threshold|band] [--once]
    beanbot summary --db market.sqlite
    beanbot trades --db market.sqlite [--limit 20]
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import BotConfig
from .cycle import TradingCycle, TradingLoop
from .exchange_adapter import SillyExchangeAdapter
from .execution import TradeExecutor
from .logging_setup import logger, setup_logging
from .market_state import MarketStateCache
from .models import now_ms
from .persistence_sqlite import MarketHistoryStore
from .rate_limit_policy import RateTracker
from .secrets import load_token
from .strategy import BandStrategy, DecisionStrategy, ThresholdStrategy
from .summary import compile_current_summaries


def create_strategy(name: str, config: BotConfig) -> DecisionStrategy:
    if name == "threshold":
        s = config.strategy
        return ThresholdStrategy(
            lookback_window=s.lookback,
            min_data_points=s.min_data_points,
            k_factor=s.k_factor,
            fallback_spread=s.fallback_spread,
            min_balance_reserve=s.min_balance_reserve,
            min_units_reserve=s.min_units_reserve,
            trade_fraction=s.trade_fraction,
        )
    if name == "band":
        return BandStrategy(buy_bands=config.bands.buy_bands, sell_bands=config.bands.sell_bands)
    raise ValueError(f"Unknown strategy: {name}")


def build_loop(config: BotConfig, token: str, store: MarketHistoryStore, strategy_name: str) -> TradingLoop:
    """Wire adapter, cache, executor and strategy into a loop sharing one rate tracker."""
    tracker = RateTracker()
    adapter = SillyExchangeAdapter(
        token,
        tracker,
        base_url=config.exchange.base_url,
        user_agent=config.exchange.user_agent,
        timeout=config.exchange.timeout,
    )
    cache = MarketStateCache(adapter)
    executor = TradeExecutor(
        adapter,
        cache,
        store,
        tracker,
        max_units_per_chunk=config.execution.max_units_per_chunk,
        max_requests_per_minute=config.rate_limit.max_requests_per_minute,
        proactive_margin=config.rate_limit.proactive_margin,
        proactive_delay_seconds=config.rate_limit.proactive_delay_seconds,
        inter_chunk_delay_seconds=config.execution.inter_chunk_delay_seconds,
        initial_backoff_seconds=config.execution.initial_backoff_seconds,
        max_backoff_seconds=config.execution.max_backoff_seconds,
    )
    cycle = TradingCycle(cache, store, create_strategy(strategy_name, config), executor)
    return TradingLoop(
        cycle,
        interval_seconds=config.loop.cycle_interval_seconds,
        min_sleep_seconds=config.loop.min_sleep_seconds,
    )


def print_summaries(store: MarketHistoryStore) -> None:
    summaries = compile_current_summaries(store, now_ms())
    print(f"\n{'Window':<8} {'Entries':<9} {'Min':<8} {'Max':<8} {'Mean':<10} {'StdDev':<10}")
    print("-" * 56)
    for window, s in summaries.by_window.items():
        print(
            f"{window.value:<8} {s.entry_count:<9} {s.min_price:<8} {s.max_price:<8} "
            f"{s.mean_price:<10.2f} {s.std_dev:<10.2f}"
        )


def print_trades(store: MarketHistoryStore, limit: int) -> None:
    trades = store.list_trades(limit=limit)
    if not trades:
        print("No trades recorded")
        return
    print(f"\n{'Timestamp':<15} {'Side':<6} {'Units':<7} {'Price':<7} {'Owned':<7} {'Beans before':<13} {'Beans after':<12}")
    print("-" * 72)
    for t in trades:
        units = t.units_bought or t.units_sold
        print(
            f"{t.timestamp:<15} {t.action.value:<6} {units:<7} {t.price:<7} "
            f"{t.owned_units_before:<7} {t.balance_before:<13} {t.balance_after:<12}"
        )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="beanbot", description="sillyexchange trading bot")
    sub = parser.add_subparsers(dest="cmd")

    run = sub.add_parser("run", help="run the trading loop")
    run.add_argument("--config", default="config.yaml", help="Path to YAML config")
    run.add_argument("--strategy", choices=["threshold", "band"], help="Override the configured strategy")
    run.add_argument("--once", action="store_true", help="Run a single cycle and exit")

    summary = sub.add_parser("summary", help="show price statistics per lookback window")
    summary.add_argument("--db", default="market.sqlite", help="Path to SQLite database")

    trades = sub.add_parser("trades", help="list recorded trades")
    trades.add_argument("--db", default="market.sqlite", help="Path to SQLite database")
    trades.add_argument("--limit", type=int, default=20)

    args = parser.parse_args(argv)

    if args.cmd in ("summary", "trades"):
        db_path = Path(args.db)
        if not db_path.exists():
            print(f"Database not found: {db_path}")
            return 1
        store = MarketHistoryStore(db_path)
        try:
            if args.cmd == "summary":
                print_summaries(store)
            else:
                print_trades(store, args.limit)
        finally:
            store.close()
        return 0

    if args.cmd != "run":
        parser.print_help()
        return 1

    config_file = Path(args.config)
    config = BotConfig.from_yaml(str(config_file)) if config_file.exists() else BotConfig.default()
    p = config.persistence
    setup_logging(
        log_file=p.log_file,
        level=p.log_level,
        log_requests=p.log_requests,
        rotation=p.log_rotation,
        retention=p.log_retention,
    )
    if not config_file.exists():
        logger.info(f"Config not found, using defaults | path={config_file}")

    try:
        token = load_token()
    except ValueError as e:
        logger.error(f"Failed to load token: {e}")
        return 1

    store = MarketHistoryStore(config.persistence.db_path)
    loop = build_loop(config, token, store, args.strategy or config.loop.strategy)
    try:
        loop.run(max_cycles=1 if args.once else None)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception:
        logger.exception("Fatal error, shutting down")
        return 1
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
