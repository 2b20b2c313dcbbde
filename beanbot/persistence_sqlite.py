import sqlite3
from pathlib import Path
from typing import List, Optional, Union

from .db_migrations import apply_migrations
from .logging_setup import logger
from .models import MarketSnapshot, TradeRecord
from .summary import MarketSummary, summarize_prices


class MarketHistoryStore:
    """SQLite-backed, append-only log of price changes and executed trades.

    - `record_if_changed(snapshot)` appends a snapshot only when the price moved.
    - `summarize(start, end)` compiles a `MarketSummary` over a time range.
    - `list_snapshots(start, end)` / `list_prices(start, end)` are inclusive
      range scans ordered by timestamp.
    - `insert_trade(record)` / `list_trades(limit)` keep the trade log.

    All writes use transactions for atomicity.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.path), timeout=30)
        self.conn.row_factory = sqlite3.Row
        apply_migrations(self.conn)

    @staticmethod
    def _snapshot_from_row(row: sqlite3.Row) -> MarketSnapshot:
        return MarketSnapshot(
            timestamp=row["timestamp"],
            price=row["price"],
            owned_units=row["owned_units"],
            balance=row["balance"],
        )

    # --- History APIs ---
    def latest_snapshot(self) -> Optional[MarketSnapshot]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT timestamp, price, owned_units, balance FROM history ORDER BY timestamp DESC, id DESC LIMIT 1"
        )
        row = cur.fetchone()
        if not row:
            return None
        return self._snapshot_from_row(row)

    def _write(self, sql: str, params: tuple) -> None:
        """Run one INSERT in its own transaction; roll back if it fails."""
        try:
            self.conn.execute("BEGIN IMMEDIATE")
            self.conn.execute(sql, params)
            self.conn.commit()
        except Exception:
            self.conn.rollback()
            raise

    def append_snapshot(self, snapshot: MarketSnapshot) -> None:
        self._write(
            "INSERT INTO history(timestamp, price, owned_units, balance) VALUES(?, ?, ?, ?)",
            (snapshot.timestamp, snapshot.price, snapshot.owned_units, snapshot.balance),
        )

    def record_if_changed(self, snapshot: MarketSnapshot) -> MarketSnapshot:
        """Append `snapshot` if its price differs from the latest stored one.

        Returns the appended snapshot, or the unchanged prior snapshot. The
        stored timestamp never goes backwards relative to the previous row.
        """
        previous = self.latest_snapshot()
        if previous is not None and previous.price == snapshot.price:
            return previous

        if previous is not None and snapshot.timestamp < previous.timestamp:
            snapshot = MarketSnapshot(
                timestamp=previous.timestamp,
                price=snapshot.price,
                owned_units=snapshot.owned_units,
                balance=snapshot.balance,
            )

        self.append_snapshot(snapshot)
        logger.info(
            f"Price change recorded | price={snapshot.price} previous={previous.price if previous else None}"
        )
        return snapshot

    def list_snapshots(self, start: int, end: int) -> List[MarketSnapshot]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT timestamp, price, owned_units, balance FROM history WHERE timestamp >= ? AND timestamp <= ? ORDER BY timestamp ASC, id ASC",
            (start, end),
        )
        return [self._snapshot_from_row(r) for r in cur.fetchall()]

    def list_prices(self, start: int, end: int) -> List[int]:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT price FROM history WHERE timestamp >= ? AND timestamp <= ? ORDER BY timestamp ASC, id ASC",
            (start, end),
        )
        return [r[0] for r in cur.fetchall()]

    def count_snapshots(self) -> int:
        cur = self.conn.cursor()
        cur.execute("SELECT COUNT(*) FROM history")
        return cur.fetchone()[0]

    def summarize(self, start: int, end: int) -> MarketSummary:
        """Statistical summary of the prices recorded in [start, end]."""
        return summarize_prices(self.list_prices(start, end), start, end)

    # --- Trade APIs ---
    def insert_trade(self, record: TradeRecord) -> None:
        self._write(
            "INSERT INTO trades(timestamp, price, owned_units_before, units_bought, units_sold, balance_before, balance_after) VALUES(?, ?, ?, ?, ?, ?, ?)",
            (
                record.timestamp,
                record.price,
                record.owned_units_before,
                record.units_bought,
                record.units_sold,
                record.balance_before,
                record.balance_after,
            ),
        )

    def list_trades(self, limit: Optional[int] = None) -> List[TradeRecord]:
        """Trades in execution order; with `limit`, only the most recent ones."""
        cur = self.conn.cursor()
        query = "SELECT timestamp, price, owned_units_before, units_bought, units_sold, balance_before, balance_after FROM trades ORDER BY timestamp DESC, id DESC"
        if limit is not None:
            cur.execute(query + " LIMIT ?", (limit,))
        else:
            cur.execute(query)
        rows = [TradeRecord(**dict(r)) for r in cur.fetchall()]
        rows.reverse()
        return rows

    def close(self):
        self.conn.close()
