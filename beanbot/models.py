"""
Market records shared by the store, the cache and the executor.

MarketSnapshot is a price-change event: the store only appends one when the
synchronized price differs from the last stored price. TradeRecord is written
once per executed chunk, so a 450 unit order against a 200 unit cap leaves
three records behind.
"""

import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict


def now_ms() -> int:
    """Milliseconds since the epoch as an integer."""
    return int(time.time() * 1000)


class TradeAction(Enum):
    """Side of a trade decision."""

    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class MarketSnapshot:
    """State of the market at a point in time.

    Attributes:
        timestamp: Milliseconds since the epoch
        price: Price of one share in beans
        owned_units: Shares held by the bot
        balance: Beans in the bot's wallet
    """

    timestamp: int
    price: int
    owned_units: int
    balance: int

    def __post_init__(self):
        if self.price <= 0:
            raise ValueError(f"price must be positive, got {self.price}")
        if self.owned_units < 0 or self.balance < 0:
            raise ValueError("owned_units and balance must be non-negative")

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class TradeRecord:
    """A single executed chunk.

    Attributes:
        timestamp: Milliseconds since the epoch
        price: Share price used for the chunk
        owned_units_before: Shares held right before the chunk
        units_bought: Shares bought, 0 for a sale
        units_sold: Shares sold, 0 for a purchase
        balance_before: Wallet beans before the chunk
        balance_after: Wallet beans after the chunk
    """

    timestamp: int
    price: int
    owned_units_before: int
    units_bought: int
    units_sold: int
    balance_before: int
    balance_after: int

    def __post_init__(self):
        if (self.units_bought > 0) == (self.units_sold > 0):
            raise ValueError("exactly one of units_bought/units_sold must be non-zero")
        if self.units_bought < 0 or self.units_sold < 0:
            raise ValueError("unit counts must be non-negative")

    @property
    def action(self) -> TradeAction:
        return TradeAction.BUY if self.units_bought else TradeAction.SELL

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
