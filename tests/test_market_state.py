import pytest

from beanbot.errors import RequestError
from beanbot.models import TradeAction


def test_getters_fetch_once_and_cache(cache, market):
    assert cache.get_price() == 50
    assert cache.get_price() == 50
    assert cache.get_owned_units() == 100
    assert cache.get_balance() == 1000
    assert cache.get_balance() == 1000

    assert [c[0] for c in market.calls] == ["price", "owned", "balance"]


def test_getters_are_independent(cache, market):
    cache.get_balance()
    assert cache.price is None
    assert cache.owned_units is None
    assert [c[0] for c in market.calls] == ["balance"]


def test_synchronize_overwrites_every_slot(cache, market, clock):
    cache.get_price()
    market.price = 61
    market.owned_units = 3
    market.balance = 42

    snapshot = cache.synchronize()

    assert (snapshot.price, snapshot.owned_units, snapshot.balance) == (61, 3, 42)
    assert snapshot.timestamp == clock.ms()
    assert (cache.price, cache.owned_units, cache.balance) == (61, 3, 42)
    assert cache.last_sync_timestamp == clock.ms()
    assert [c[0] for c in market.calls] == ["price", "price", "owned", "balance"]


def test_failed_synchronize_keeps_previous_slots(cache, market):
    cache.synchronize()
    market.price = 70
    market.queue_failure("balance", RequestError("down"))

    with pytest.raises(RequestError):
        cache.synchronize()

    assert cache.price == 50
    assert cache.balance == 1000


def test_invalid_state_does_not_overwrite_slots(cache, market):
    snapshot = cache.synchronize()
    market.price = 0

    with pytest.raises(ValueError):
        cache.synchronize()

    assert cache.price == 50
    assert cache.last_sync_timestamp == snapshot.timestamp


def test_apply_fill_updates_optimistically(cache, market):
    cache.synchronize()
    calls_before = len(market.calls)

    cache.apply_fill(TradeAction.BUY, 4, 50)
    assert cache.owned_units == 104
    assert cache.balance == 800

    cache.apply_fill(TradeAction.SELL, 10, 60)
    assert cache.owned_units == 94
    assert cache.balance == 1400
    assert len(market.calls) == calls_before


def test_apply_fill_rejects_hold(cache):
    cache.synchronize()
    with pytest.raises(ValueError):
        cache.apply_fill(TradeAction.HOLD, 1, 50)


def test_refresh_price_reads_only_price(cache, market):
    cache.synchronize()
    market.price = 55
    calls_before = len(market.calls)

    assert cache.refresh_price() == 55
    assert cache.price == 55
    assert market.calls[calls_before:] == [("price", None)]


def test_invalidate_forces_refetch(cache, market):
    cache.synchronize()
    market.balance = 10
    cache.invalidate()

    assert cache.get_balance() == 10
