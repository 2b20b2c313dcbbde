"""Trade cycle orchestration and the outer loop.

One cycle: synchronize -> record price change -> compile summaries -> decide
-> execute. Cycles never overlap; the loop waits for one to finish before
sleeping and starting the next.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import ErrorKind, RequestError, classify_error
from .execution import TradeExecutor, TradeResult
from .logging_setup import logger
from .market_state import MarketStateCache
from .models import MarketSnapshot, now_ms
from .persistence_sqlite import MarketHistoryStore
from .strategy import DecisionContext, DecisionStrategy, TradeDecision
from .summary import MarketSummaries, compile_current_summaries


@dataclass
class CycleReport:
    """What a cycle saw and did. `result` is None when the decision was hold."""
    snapshot: MarketSnapshot
    summaries: MarketSummaries
    decision: TradeDecision
    result: Optional[TradeResult] = None


class TradingCycle:
    """Run one full synchronize/decide/execute pass."""

    def __init__(
        self,
        cache: MarketStateCache,
        store: MarketHistoryStore,
        strategy: DecisionStrategy,
        executor: TradeExecutor,
        clock: Callable[[], int] = now_ms,
    ):
        self.cache = cache
        self.store = store
        self.strategy = strategy
        self.executor = executor
        self.clock = clock

    def perform_cycle(self) -> CycleReport:
        """Run one cycle.

        Raises:
            RateLimitError / RequestError: synchronization failed; the cycle
                did nothing and can be skipped
        """
        logger.info(f"New trade cycle | strategy={self.strategy.name}")

        state = self.cache.synchronize()
        self.store.record_if_changed(state)
        summaries = compile_current_summaries(self.store, self.clock())

        logger.info(
            f"Current state | price={state.price} owned={state.owned_units} balance={state.balance}"
        )

        decision = self.strategy.decide(DecisionContext(snapshot=state, summaries=summaries))
        report = CycleReport(snapshot=state, summaries=summaries, decision=decision)

        if not decision.is_trade:
            logger.info("Holding, no action taken")
            return report

        logger.info(f"Decided to trade | action={decision.action.value} units={decision.quantity}")
        report.result = self.executor.execute(decision.action, decision.quantity, state.price)

        if report.result.completed:
            logger.info(
                f"Trade successful | action={decision.action.value} units={decision.quantity}"
            )
        else:
            logger.warning(
                f"Trade incomplete | action={decision.action.value} "
                f"filled={report.result.filled_quantity} remaining={report.result.remaining_quantity}"
            )
        return report


class TradingLoop:
    """Run cycles at a fixed interval.

    A RateLimitError or RequestError escaping a cycle skips that cycle. Any
    other exception ends the loop.
    """

    def __init__(
        self,
        cycle: TradingCycle,
        *,
        interval_seconds: float = 600.0,
        min_sleep_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.cycle = cycle
        self.interval_seconds = interval_seconds
        self.min_sleep_seconds = min_sleep_seconds
        self.sleep = sleep
        self.monotonic = monotonic

    def run_once(self) -> Optional[CycleReport]:
        try:
            return self.cycle.perform_cycle()
        except RequestError as e:
            if classify_error(e) is ErrorKind.RATE_LIMITED:
                logger.warning(f"Cycle skipped, rate limited | error={e}")
            else:
                logger.warning(f"Cycle skipped, request failed | error={e}")
            return None

    def next_sleep(self, elapsed: float) -> float:
        return max(self.min_sleep_seconds, self.interval_seconds - elapsed)

    def run(self, max_cycles: Optional[int] = None) -> int:
        """Run until `max_cycles` cycles have run (forever if None). Returns the count."""
        count = 0
        while max_cycles is None or count < max_cycles:
            start = self.monotonic()
            self.run_once()
            count += 1
            if max_cycles is not None and count >= max_cycles:
                break

            elapsed = self.monotonic() - start
            delay = self.next_sleep(elapsed)
            logger.info(f"Cycle done | elapsed={elapsed:.2f}s sleeping={delay:.0f}s")
            self.sleep(delay)
        return count
