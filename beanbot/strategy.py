"""
Decision strategies: turn the current market state into a trade decision.

Strategies are pure functions of a ``DecisionContext`` and share one rule:
a computed quantity that is not positive becomes a hold, never a zero-unit
buy or sell. Execution limits such as the per-order chunk cap are not applied
here; the executor handles them.

Strategies:
    ThresholdStrategy: trade when the price leaves a band of standard
        deviations around the lookback mean
    BandStrategy: trade fixed fractions at static price breakpoints

Examples:
    >>> strategy = ThresholdStrategy(min_balance_reserve=300, trade_fraction=0.15)
    >>> decision = strategy.decide(DecisionContext(snapshot, summaries))
    >>> decision.action, decision.quantity
    (<TradeAction.BUY: 'buy'>, 2)
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .logging_setup import logger
from .models import MarketSnapshot, TradeAction
from .summary import LookbackWindow, MarketSummaries
from .thresholds import calculate_thresholds

Band = Tuple[int, float]

DEFAULT_BUY_BANDS: Tuple[Band, ...] = (
    (40, 0.95),
    (65, 0.8),
    (80, 0.5),
    (95, 0.25),
    (100, 0.05),
)

DEFAULT_SELL_BANDS: Tuple[Band, ...] = (
    (150, 0.99),
    (140, 0.95),
    (130, 0.80),
    (120, 0.70),
    (110, 0.25),
    (100, 0.1),
)


@dataclass(frozen=True)
class TradeDecision:
    """What to do this cycle. `quantity` is 0 exactly when `action` is HOLD."""

    action: TradeAction
    quantity: int

    def __post_init__(self):
        if self.action is TradeAction.HOLD and self.quantity != 0:
            raise ValueError("a hold decision must have quantity 0")
        if self.action is not TradeAction.HOLD and self.quantity <= 0:
            raise ValueError("a buy or sell decision needs a positive quantity")

    @classmethod
    def hold(cls) -> "TradeDecision":
        return cls(TradeAction.HOLD, 0)

    @property
    def is_trade(self) -> bool:
        return self.action is not TradeAction.HOLD


@dataclass(frozen=True)
class DecisionContext:
    """Inputs available to a strategy."""

    snapshot: MarketSnapshot
    summaries: Optional[MarketSummaries] = None


def clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(value, maximum))


def make_decision(action: TradeAction, quantity: float) -> TradeDecision:
    """Floor `quantity` to whole units; anything not positive degrades to hold."""
    units = math.floor(quantity)
    if action is TradeAction.HOLD or units <= 0:
        return TradeDecision.hold()
    return TradeDecision(action, units)


class DecisionStrategy(ABC):
    """Maps a decision context to a trade decision."""

    name = "strategy"

    @abstractmethod
    def decide(self, context: DecisionContext) -> TradeDecision:
        """Return the decision for this cycle."""


class ThresholdStrategy(DecisionStrategy):
    """Buy below and sell above statistical thresholds over a lookback window."""

    name = "threshold"

    def __init__(
        self,
        *,
        lookback_window: LookbackWindow = LookbackWindow.LAST_1D,
        min_data_points: int = 12,
        k_factor: float = 1.0,
        fallback_spread: int = 5,
        min_balance_reserve: int = 300,
        min_units_reserve: int = 10,
        trade_fraction: float = 0.15,
    ):
        if not 0 < trade_fraction <= 1:
            raise ValueError(f"trade_fraction must be in (0, 1], got {trade_fraction}")
        self.lookback_window = lookback_window
        self.min_data_points = min_data_points
        self.k_factor = k_factor
        self.fallback_spread = fallback_spread
        self.min_balance_reserve = min_balance_reserve
        self.min_units_reserve = min_units_reserve
        self.trade_fraction = trade_fraction

    def decide(self, context: DecisionContext) -> TradeDecision:
        if context.summaries is None:
            raise ValueError("ThresholdStrategy needs market summaries")

        snapshot = context.snapshot
        price = snapshot.price
        summary = context.summaries.get(self.lookback_window)

        if summary.entry_count < self.min_data_points:
            logger.info(
                f"Insufficient data, holding | window={self.lookback_window.value} "
                f"entries={summary.entry_count} required={self.min_data_points}"
            )
            return TradeDecision.hold()

        thresholds = calculate_thresholds(
            summary, k_factor=self.k_factor, fallback_spread=self.fallback_spread
        )
        if not thresholds.is_valid:
            return TradeDecision.hold()

        logger.info(
            f"Thresholds | buy={thresholds.buy_threshold} sell={thresholds.sell_threshold} price={price}"
        )

        if price < thresholds.buy_threshold:
            affordable = (snapshot.balance - self.min_balance_reserve) // price
            if affordable <= 0:
                logger.info(
                    f"Below buy threshold but nothing affordable above reserve | balance={snapshot.balance} reserve={self.min_balance_reserve}"
                )
                return TradeDecision.hold()
            desired = math.floor(affordable * self.trade_fraction)
            return make_decision(TradeAction.BUY, clamp(desired, 1, affordable))

        if price > thresholds.sell_threshold:
            sellable = snapshot.owned_units - self.min_units_reserve
            if sellable <= 0:
                logger.info(
                    f"Above sell threshold but no units above reserve | owned={snapshot.owned_units} reserve={self.min_units_reserve}"
                )
                return TradeDecision.hold()
            desired = math.floor(sellable * self.trade_fraction)
            return make_decision(TradeAction.SELL, clamp(desired, 1, sellable))

        logger.info(
            f"Price within thresholds, holding | price={price} buy={thresholds.buy_threshold} sell={thresholds.sell_threshold}"
        )
        return TradeDecision.hold()


class BandStrategy(DecisionStrategy):
    """Static price bands, each mapped to a fraction of the tradable amount.

    Buy bands match ``price <= breakpoint`` and are checked in ascending
    breakpoint order, but only when at least one unit is affordable. Sell bands
    match ``price >= breakpoint`` in descending order, only when units are held.
    Buying is considered first.
    """

    name = "band"

    def __init__(
        self,
        buy_bands: Sequence[Band] = DEFAULT_BUY_BANDS,
        sell_bands: Sequence[Band] = DEFAULT_SELL_BANDS,
    ):
        self.buy_bands = self._validated(buy_bands, ascending=True)
        self.sell_bands = self._validated(sell_bands, ascending=False)

    @staticmethod
    def _validated(bands: Sequence[Band], ascending: bool) -> Tuple[Band, ...]:
        bands = tuple((int(bp), float(fraction)) for bp, fraction in bands)
        breakpoints = [bp for bp, _ in bands]
        ordered = sorted(breakpoints, reverse=not ascending)
        if breakpoints != ordered or len(set(breakpoints)) != len(breakpoints):
            direction = "ascending" if ascending else "descending"
            raise ValueError(f"band breakpoints must be strictly {direction}: {breakpoints}")
        for bp, fraction in bands:
            if not 0 < fraction <= 1:
                raise ValueError(f"band fraction must be in (0, 1], got {fraction} at {bp}")
        return bands

    def decide(self, context: DecisionContext) -> TradeDecision:
        snapshot = context.snapshot
        price = snapshot.price

        max_buy = snapshot.balance // price
        if max_buy > 0:
            for level, fraction in self.buy_bands:
                if price <= level:
                    return make_decision(TradeAction.BUY, max_buy * fraction)

        if snapshot.owned_units > 0:
            for level, fraction in self.sell_bands:
                if price >= level:
                    return make_decision(TradeAction.SELL, snapshot.owned_units * fraction)

        return TradeDecision.hold()
