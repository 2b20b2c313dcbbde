"""
Locally cached copy of the market state, to save on requests.

Each slot (price, owned units, balance) is filled lazily and independently.
A filled slot is trusted until it is overwritten, either by ``synchronize()``,
by ``refresh_price()``, or optimistically by ``apply_fill()`` after an order
succeeds. Optimistic updates can drift from the server when it applies
slippage; callers that need ground truth must call ``synchronize()``.
"""

from typing import Callable, Optional

from .exchange_adapter import MarketAdapter
from .logging_setup import logger
from .models import MarketSnapshot, TradeAction, now_ms


class MarketStateCache:
    """Single-slot cache of price, owned units and balance.

    Attributes:
        price: Cached share price, or None
        owned_units: Cached share count, or None
        balance: Cached wallet beans, or None
        last_sync_timestamp: Time of the last full synchronization, or None
    """

    def __init__(self, adapter: MarketAdapter, clock: Callable[[], int] = now_ms):
        self.adapter = adapter
        self.clock = clock
        self.price: Optional[int] = None
        self.owned_units: Optional[int] = None
        self.balance: Optional[int] = None
        self.last_sync_timestamp: Optional[int] = None

    def get_price(self) -> int:
        if self.price is None:
            self.price = self.adapter.fetch_price()
        return self.price

    def get_owned_units(self) -> int:
        if self.owned_units is None:
            self.owned_units = self.adapter.fetch_owned_units()
        return self.owned_units

    def get_balance(self) -> int:
        if self.balance is None:
            self.balance = self.adapter.fetch_balance()
        return self.balance

    def refresh_price(self) -> int:
        """Re-read only the price from the market and overwrite its slot."""
        self.price = self.adapter.fetch_price()
        return self.price

    def synchronize(self) -> MarketSnapshot:
        """Fetch all three quantities and overwrite every slot.

        Uses up to three requests. If any of them fails the slots keep their
        previous values.
        """
        price = self.adapter.fetch_price()
        owned_units = self.adapter.fetch_owned_units()
        balance = self.adapter.fetch_balance()
        snapshot = MarketSnapshot(
            timestamp=self.clock(),
            price=price,
            owned_units=owned_units,
            balance=balance,
        )

        self.price = price
        self.owned_units = owned_units
        self.balance = balance
        self.last_sync_timestamp = snapshot.timestamp

        logger.debug(
            f"State synchronized | price={price} owned={owned_units} balance={balance}"
        )
        return snapshot

    def apply_fill(self, action: TradeAction, units: int, price: int) -> None:
        """Update owned units and balance after a successful order without a re-fetch."""
        owned = self.get_owned_units()
        balance = self.get_balance()
        if action is TradeAction.BUY:
            self.owned_units = owned + units
            self.balance = balance - units * price
        elif action is TradeAction.SELL:
            self.owned_units = owned - units
            self.balance = balance + units * price
        else:
            raise ValueError(f"cannot apply a fill for {action}")

    def invalidate(self) -> None:
        """Forget every slot so the next reads go to the market."""
        self.price = None
        self.owned_units = None
        self.balance = None
