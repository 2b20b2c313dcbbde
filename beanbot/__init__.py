"""
sillyexchange trading bot.

Keeps a local picture of the sillyexchange market (share price, shares held,
beans in the wallet), records every price change to SQLite, and trades when
the price leaves a statistical band around its recent mean:
- Sliding-window tracking of calls against the per-minute request budget
- Single-slot state cache with optimistic updates after each order
- Append-only price history with 1h/12h/1d/1w summaries
- Threshold and static-band decision strategies
- Chunked order execution with exponential backoff on rate limits
- Structured logging via loguru
- Configuration-driven (YAML)

Core Modules:
    rate_limit_policy: trailing-minute call counting
    exchange_adapter: HTTP transport and market operations
    market_state: cached market state
    persistence_sqlite: price history and trade log
    summary: windowed price statistics
    thresholds: buy/sell bounds from a summary
    strategy: decision strategies
    execution: chunked order executor
    cycle: trade cycle and outer loop

Example:
    >>> from beanbot.exchange_adapter import SillyExchangeAdapter
    >>> from beanbot.market_state import MarketStateCache
    >>> from beanbot.persistence_sqlite import MarketHistoryStore
    >>> from beanbot.secrets import load_token
    >>>
    >>> adapter = SillyExchangeAdapter(load_token())
    >>> cache = MarketStateCache(adapter)
    >>> store = MarketHistoryStore("market.sqlite")
    >>> store.record_if_changed(cache.synchronize())
"""

__version__ = "0.1.0"
__all__ = [
    "rate_limit_policy",
    "errors",
    "exchange_adapter",
    "market_state",
    "models",
    "persistence_sqlite",
    "summary",
    "thresholds",
    "strategy",
    "execution",
    "cycle",
    "config",
    "secrets",
]
