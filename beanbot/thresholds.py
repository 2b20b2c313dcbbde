"""Buy/sell price bounds derived from a market summary."""
import math
from dataclasses import dataclass

from .logging_setup import logger
from .summary import MarketSummary


@dataclass(frozen=True)
class TradeThresholds:
    """Buy below `buy_threshold`, sell above `sell_threshold`.

    `is_valid` is False when the bounds have crossed; callers must hold.
    """

    buy_threshold: int
    sell_threshold: int
    is_valid: bool


def calculate_thresholds(
    summary: MarketSummary, k_factor: float = 1.0, fallback_spread: int = 5
) -> TradeThresholds:
    """Place the bounds `k_factor` standard deviations around the mean.

    A standard deviation below 1 is treated as zero and the bounds fall back to
    `fallback_spread` beans either side of the mean. The buy bound is never
    below 1.
    """
    avg = summary.mean_price
    sd = summary.std_dev

    if sd < 1:
        logger.debug(f"Standard deviation near zero, using fixed spread | sd={sd} spread={fallback_spread}")
        buy_threshold = math.floor(avg - fallback_spread)
        sell_threshold = math.floor(avg + fallback_spread)
    else:
        buy_threshold = math.floor(avg - k_factor * sd)
        sell_threshold = math.floor(avg + k_factor * sd)

    buy_threshold = max(1, buy_threshold)

    if buy_threshold >= sell_threshold:
        logger.info(f"Thresholds crossed, holding | buy={buy_threshold} sell={sell_threshold}")
        return TradeThresholds(buy_threshold, sell_threshold, is_valid=False)
    return TradeThresholds(buy_threshold, sell_threshold, is_valid=True)
