from pathlib import Path

import pytest

from beanbot.exchange_adapter import InMemoryMarketAdapter
from beanbot.market_state import MarketStateCache
from beanbot.persistence_sqlite import MarketHistoryStore
from beanbot.rate_limit_policy import RateTracker


class FakeClock:
    """Manually advanced clock; `seconds()` feeds RateTracker, `ms()` feeds the store."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def seconds(self) -> float:
        return self.now

    def ms(self) -> int:
        return int(self.now * 1000)

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Stand-in for time.sleep that records delays and can run a hook."""

    def __init__(self, clock: FakeClock = None, hook=None):
        self.delays = []
        self.clock = clock
        self.hook = hook

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)
        if self.hook is not None:
            self.hook(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return RateTracker(time_provider=clock.seconds)


@pytest.fixture
def market(tracker):
    return InMemoryMarketAdapter(price=50, owned_units=100, balance=1000, rate_tracker=tracker)


@pytest.fixture
def cache(market, clock):
    return MarketStateCache(market, clock=clock.ms)


@pytest.fixture
def store(tmp_path: Path):
    s = MarketHistoryStore(tmp_path / "market.sqlite")
    yield s
    s.close()


@pytest.fixture
def sleep(clock):
    return RecordingSleep(clock)
