"""
Chunked order execution with throttling and rate-limit backoff.

A logical order is split into chunks of at most ``max_units_per_chunk``
units, each submitted as a single buy/sell call.

State Transitions:
    EXECUTING -> COMPLETED   every chunk confirmed
    EXECUTING -> ABORTED     request failure, or the price moved while backing off

Per chunk:
    1. If the trailing-minute call volume is within ``proactive_margin`` of the
       budget, pause for ``proactive_delay_seconds`` first.
    2. Submit ``min(remaining, max_units_per_chunk)`` units.
    3. On success: reset the backoff, log a TradeRecord, pause briefly if more remains.
    4. On RateLimitError: sleep the backoff, double it up to the ceiling, then
       re-read the price. Abort if it moved from the reference price, otherwise
       retry the same chunk.
    5. On any other RequestError: abort.
    6. Anything else propagates.

Confirmed chunks are never rolled back; a partial fill is reported through
the result, not raised.
"""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, List, Optional

from .errors import RateLimitError, RequestError
from .exchange_adapter import MarketAdapter
from .logging_setup import logger
from .market_state import MarketStateCache
from .models import TradeAction, TradeRecord, now_ms
from .persistence_sqlite import MarketHistoryStore
from .rate_limit_policy import RateTracker


class ExecutionStatus(Enum):
    """Lifecycle of a chunked order."""

    EXECUTING = auto()
    COMPLETED = auto()
    ABORTED = auto()


@dataclass
class TradeResult:
    """Outcome of a chunked order.

    Attributes:
        action: BUY or SELL
        total_quantity: Units requested
        remaining_quantity: Units never confirmed
        reference_price: Price the decision was made at
        final_price: Price known to the cache when execution stopped
        status: COMPLETED or ABORTED
        records: One TradeRecord per confirmed chunk
        abort_reason: Why execution stopped early, if it did
    """

    action: TradeAction
    total_quantity: int
    remaining_quantity: int
    reference_price: int
    final_price: Optional[int] = None
    status: ExecutionStatus = ExecutionStatus.EXECUTING
    records: List[TradeRecord] = field(default_factory=list)
    abort_reason: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.remaining_quantity == 0

    @property
    def filled_quantity(self) -> int:
        return self.total_quantity - self.remaining_quantity


class TradeExecutor:
    """Drive chunked buy/sell orders against the market."""

    def __init__(
        self,
        adapter: MarketAdapter,
        cache: MarketStateCache,
        store: MarketHistoryStore,
        rate_tracker: Optional[RateTracker] = None,
        *,
        max_units_per_chunk: int = 200,
        max_requests_per_minute: int = 570,
        proactive_margin: int = 5,
        proactive_delay_seconds: float = 1.0,
        inter_chunk_delay_seconds: float = 0.05,
        initial_backoff_seconds: float = 30.0,
        max_backoff_seconds: float = 300.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], int] = now_ms,
    ):
        if max_units_per_chunk < 1:
            raise ValueError("max_units_per_chunk must be at least 1")
        self.adapter = adapter
        self.cache = cache
        self.store = store
        self.rate_tracker = rate_tracker or adapter.rate_tracker
        self.max_units_per_chunk = max_units_per_chunk
        self.max_requests_per_minute = max_requests_per_minute
        self.proactive_margin = proactive_margin
        self.proactive_delay_seconds = proactive_delay_seconds
        self.inter_chunk_delay_seconds = inter_chunk_delay_seconds
        self.initial_backoff_seconds = initial_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.sleep = sleep
        self.clock = clock

    def _throttle_if_needed(self) -> None:
        if self.rate_tracker.is_near_limit(self.max_requests_per_minute, self.proactive_margin):
            logger.info(
                f"Nearing rate limit, pausing | recent_calls={self.rate_tracker.count_recent_calls()} "
                f"delay={self.proactive_delay_seconds}s"
            )
            self.sleep(self.proactive_delay_seconds)

    def submit_chunk(self, action: TradeAction, units: int) -> TradeRecord:
        """Submit one order of `units` and record it.

        Reads balance, price and holdings through the cache, updates the cache
        optimistically after the order is accepted and appends a TradeRecord.

        Raises:
            ValueError: `units` outside [1, max_units_per_chunk], or a buy the
                cached balance cannot cover
            RateLimitError / RequestError: from the market
        """
        if units < 1 or units > self.max_units_per_chunk:
            raise ValueError(f"invalid chunk size: {units}")

        balance_before = self.cache.get_balance()
        price = self.cache.get_price()
        owned_before = self.cache.get_owned_units()

        if action is TradeAction.BUY:
            if units * price > balance_before:
                raise ValueError(f"not enough beans in wallet to buy {units} shares")
            self.adapter.submit_buy(units)
        elif action is TradeAction.SELL:
            self.adapter.submit_sell(units)
        else:
            raise ValueError(f"cannot submit a {action} order")

        self.cache.apply_fill(action, units, price)

        record = TradeRecord(
            timestamp=self.clock(),
            price=price,
            owned_units_before=owned_before,
            units_bought=units if action is TradeAction.BUY else 0,
            units_sold=units if action is TradeAction.SELL else 0,
            balance_before=balance_before,
            balance_after=self.cache.get_balance(),
        )
        self.store.insert_trade(record)
        return record

    def execute(self, action: TradeAction, total_quantity: int, reference_price: int) -> TradeResult:
        """Execute `total_quantity` units in chunks.

        Args:
            action: BUY or SELL
            total_quantity: Units to trade, must be positive
            reference_price: Price at the time the decision was made

        Returns:
            TradeResult; `completed` is False for partial fills
        """
        if action is TradeAction.HOLD:
            raise ValueError("nothing to execute for a hold")
        if total_quantity <= 0:
            raise ValueError(f"total_quantity must be positive, got {total_quantity}")

        logger.info(
            f"Executing order | action={action.value} units={total_quantity} reference_price={reference_price}"
        )

        result = TradeResult(
            action=action,
            total_quantity=total_quantity,
            remaining_quantity=total_quantity,
            reference_price=reference_price,
        )
        backoff = self.initial_backoff_seconds

        while result.remaining_quantity > 0:
            self._throttle_if_needed()

            chunk = min(result.remaining_quantity, self.max_units_per_chunk)
            logger.debug(
                f"Submitting chunk | action={action.value} units={chunk} "
                f"remaining_after={result.remaining_quantity - chunk}"
            )

            try:
                record = self.submit_chunk(action, chunk)
            except RateLimitError as e:
                logger.warning(f"Rate limited during chunk, backing off | delay={backoff}s error={e}")
                self.sleep(backoff)
                backoff = min(backoff * 2, self.max_backoff_seconds)

                try:
                    current_price = self.cache.refresh_price()
                except RequestError as check_error:
                    result.abort_reason = f"price check failed after backoff: {check_error}"
                    break

                if current_price != reference_price:
                    result.abort_reason = (
                        f"price moved from {reference_price} to {current_price} during backoff"
                    )
                    break
                logger.info(f"Price unchanged after backoff, retrying chunk | price={current_price}")
                continue
            except RequestError as e:
                result.abort_reason = f"request failed: {e}"
                break

            result.records.append(record)
            result.remaining_quantity -= chunk
            backoff = self.initial_backoff_seconds
            logger.debug(f"Chunk confirmed | action={action.value} units={chunk}")

            if result.remaining_quantity > 0:
                self.sleep(self.inter_chunk_delay_seconds)

        if result.completed:
            result.status = ExecutionStatus.COMPLETED
            logger.info(f"Order completed | action={action.value} units={total_quantity}")
        else:
            result.status = ExecutionStatus.ABORTED
            logger.warning(
                f"Order aborted | action={action.value} remaining={result.remaining_quantity} "
                f"reason={result.abort_reason}"
            )

        try:
            result.final_price = self.cache.get_price()
        except RequestError as e:
            logger.warning(f"Final price unavailable | error={e}")
        return result
