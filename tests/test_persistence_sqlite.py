import sqlite3
from pathlib import Path

import pytest

from beanbot.models import MarketSnapshot, TradeRecord
from beanbot.persistence_sqlite import MarketHistoryStore


def snap(ts, price, owned=0, balance=1000):
    return MarketSnapshot(timestamp=ts, price=price, owned_units=owned, balance=balance)


def test_first_snapshot_is_always_recorded(store):
    recorded = store.record_if_changed(snap(1000, 40))
    assert recorded == snap(1000, 40)
    assert store.latest_snapshot() == snap(1000, 40)


def test_identical_price_is_recorded_once(store):
    first = store.record_if_changed(snap(1000, 40))
    second = store.record_if_changed(snap(2000, 40, owned=5))

    assert store.count_snapshots() == 1
    assert second == first


def test_price_change_appends(store):
    store.record_if_changed(snap(1000, 40))
    store.record_if_changed(snap(2000, 41))
    store.record_if_changed(snap(3000, 40))

    assert [s.price for s in store.list_snapshots(0, 10_000)] == [40, 41, 40]


def test_timestamps_never_go_backwards(store):
    store.record_if_changed(snap(5000, 40))
    recorded = store.record_if_changed(snap(4000, 45))

    assert recorded.timestamp == 5000
    assert recorded.price == 45
    assert store.latest_snapshot().price == 45


def test_range_queries_are_inclusive_and_ordered(store):
    for ts, price in [(100, 10), (200, 20), (300, 30), (400, 40)]:
        store.record_if_changed(snap(ts, price))

    assert store.list_prices(200, 300) == [20, 30]
    assert [s.timestamp for s in store.list_snapshots(150, 400)] == [200, 300, 400]
    assert store.list_prices(500, 600) == []


def test_summarize_over_range(store):
    for ts, price in [(100, 10), (200, 20), (300, 30)]:
        store.record_if_changed(snap(ts, price))

    summary = store.summarize(100, 300)
    assert summary.entry_count == 3
    assert summary.mean_price == 20
    assert summary.std_dev == pytest.approx(10.0)


def test_trades_round_trip_in_execution_order(store):
    first = TradeRecord(1000, 50, 0, 200, 0, 20_000, 10_000)
    second = TradeRecord(1000, 50, 200, 50, 0, 10_000, 7_500)
    store.insert_trade(first)
    store.insert_trade(second)

    assert store.list_trades() == [first, second]
    assert store.list_trades(limit=1) == [second]


def test_history_survives_reopen(tmp_path: Path):
    path = tmp_path / "nested" / "market.sqlite"
    s = MarketHistoryStore(path)
    s.record_if_changed(snap(1000, 40))
    s.close()

    reopened = MarketHistoryStore(path)
    assert reopened.latest_snapshot() == snap(1000, 40)
    reopened.close()


def test_snapshot_rejects_non_positive_price():
    with pytest.raises(ValueError):
        snap(1000, 0)


def test_trade_record_requires_exactly_one_side():
    with pytest.raises(ValueError):
        TradeRecord(1000, 50, 0, 0, 0, 100, 100)
    with pytest.raises(ValueError):
        TradeRecord(1000, 50, 0, 1, 1, 100, 100)


def test_failed_write_rolls_back_and_store_stays_usable(store):
    store.conn.execute("DROP TABLE trades")

    with pytest.raises(sqlite3.OperationalError):
        store.insert_trade(TradeRecord(1_000, 50, 0, 2, 0, 1000, 900))

    assert not store.conn.in_transaction
    store.append_snapshot(MarketSnapshot(timestamp=1_000, price=50, owned_units=0, balance=0))
    assert store.count_snapshots() == 1
