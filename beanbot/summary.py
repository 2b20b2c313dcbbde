"""
Statistical summaries of the price history.

A summary covers every snapshot whose timestamp falls in [period_start,
period_end]. Because snapshots are only written on price changes, the entry
count is the number of price changes in the window, not a sample rate.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence

HOUR_MS = 60 * 60 * 1000


class LookbackWindow(Enum):
    """Trailing windows compiled on every cycle."""

    LAST_1H = "1h"
    LAST_12H = "12h"
    LAST_1D = "1d"
    LAST_1W = "1w"

    @property
    def duration_ms(self) -> int:
        return _WINDOW_DURATIONS[self]


_WINDOW_DURATIONS = {
    LookbackWindow.LAST_1H: HOUR_MS,
    LookbackWindow.LAST_12H: 12 * HOUR_MS,
    LookbackWindow.LAST_1D: 24 * HOUR_MS,
    LookbackWindow.LAST_1W: 7 * 24 * HOUR_MS,
}


@dataclass(frozen=True)
class MarketSummary:
    """Price statistics over a period.

    min_price, max_price and mean_price are 0 for an empty period; std_dev is
    the sample standard deviation and is 0 with fewer than two entries.
    """

    period_start: int
    period_end: int
    entry_count: int
    min_price: int
    max_price: int
    mean_price: float
    std_dev: float


def sample_std_dev(values: Sequence[float], mean: float) -> float:
    """Standard deviation with Bessel's correction; 0 for fewer than two values."""
    count = len(values)
    if count < 2:
        return 0.0
    variance = sum((v - mean) ** 2 for v in values) / (count - 1)
    return math.sqrt(variance)


def summarize_prices(prices: Sequence[int], period_start: int, period_end: int) -> MarketSummary:
    """Compile a summary from the prices recorded in a period."""
    if not prices:
        return MarketSummary(period_start, period_end, 0, 0, 0, 0.0, 0.0)

    mean = sum(prices) / len(prices)
    return MarketSummary(
        period_start=period_start,
        period_end=period_end,
        entry_count=len(prices),
        min_price=min(prices),
        max_price=max(prices),
        mean_price=mean,
        std_dev=sample_std_dev(prices, mean),
    )


@dataclass(frozen=True)
class MarketSummaries:
    """Summaries over every lookback window, all relative to the same instant."""

    compiled_at: int
    by_window: Dict[LookbackWindow, MarketSummary]

    def get(self, window: LookbackWindow) -> MarketSummary:
        return self.by_window[window]

    @property
    def last_1h(self) -> MarketSummary:
        return self.by_window[LookbackWindow.LAST_1H]

    @property
    def last_12h(self) -> MarketSummary:
        return self.by_window[LookbackWindow.LAST_12H]

    @property
    def last_1d(self) -> MarketSummary:
        return self.by_window[LookbackWindow.LAST_1D]

    @property
    def last_1w(self) -> MarketSummary:
        return self.by_window[LookbackWindow.LAST_1W]


def compile_current_summaries(store, now: int) -> MarketSummaries:
    """Compile the 1h, 12h, 1d and 1w summaries ending at `now`.

    Args:
        store: Anything with a ``summarize(start, end)`` method, normally a
            ``MarketHistoryStore``
        now: End of every window, in milliseconds since the epoch
    """
    return MarketSummaries(
        compiled_at=now,
        by_window={
            window: store.summarize(now - window.duration_ms, now)
            for window in LookbackWindow
        },
    )
