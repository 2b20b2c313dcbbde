from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from .logging_setup import logger


def _migration_1(conn):
    cur = conn.cursor()
    # one row per price change
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp INTEGER NOT NULL,
            price INTEGER NOT NULL,
            owned_units INTEGER NOT NULL,
            balance INTEGER NOT NULL
        )
        """
    )
    # one row per executed chunk
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS trades (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp INTEGER NOT NULL,
            price INTEGER NOT NULL,
            owned_units_before INTEGER NOT NULL,
            units_bought INTEGER NOT NULL,
            units_sold INTEGER NOT NULL,
            balance_before INTEGER NOT NULL,
            balance_after INTEGER NOT NULL
        )
        """
    )


def _migration_1_down(conn):
    cur = conn.cursor()
    cur.execute("DROP TABLE IF EXISTS trades")
    cur.execute("DROP TABLE IF EXISTS history")


def _migration_2(conn):
    """Index timestamps for range scans over the history."""
    cur = conn.cursor()
    cur.execute("CREATE INDEX IF NOT EXISTS idx_history_timestamp ON history(timestamp)")
    cur.execute("CREATE INDEX IF NOT EXISTS idx_trades_timestamp ON trades(timestamp)")


def _migration_2_down(conn):
    cur = conn.cursor()
    cur.execute("DROP INDEX IF EXISTS idx_history_timestamp")
    cur.execute("DROP INDEX IF EXISTS idx_trades_timestamp")


MIGRATIONS: Dict[int, Callable] = {
    1: _migration_1,
    2: _migration_2,
}

MIGRATION_DOWNS: Dict[int, Callable] = {
    1: _migration_1_down,
    2: _migration_2_down,
}


def _applied_versions(conn) -> List[int]:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )
    conn.commit()
    return [row[0] for row in conn.execute("SELECT version FROM schema_migrations ORDER BY version")]


def _run_in_transaction(conn, step: Callable, bookkeeping: str, params: tuple) -> None:
    try:
        conn.execute("BEGIN IMMEDIATE")
        step(conn)
        conn.execute(bookkeeping, params)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def apply_migrations(conn) -> List[int]:
    """Bring the schema up to date.

    Each pending version runs in its own transaction together with its
    ``schema_migrations`` row. Returns the versions applied by this call.
    """
    done = set(_applied_versions(conn))
    pending = [v for v in sorted(MIGRATIONS) if v not in done]

    for version in pending:
        _run_in_transaction(
            conn,
            MIGRATIONS[version],
            "INSERT INTO schema_migrations(version, applied_at) VALUES(?, ?)",
            (version, datetime.now(timezone.utc).isoformat()),
        )
        logger.info(f"Applied migration | version={version}")
    return pending


def rollback_migration(conn, version: int) -> None:
    """Undo one migration version with its registered down step."""
    down = MIGRATION_DOWNS.get(version)
    if down is None:
        raise RuntimeError(f"No down migration registered for version {version}")
    _run_in_transaction(conn, down, "DELETE FROM schema_migrations WHERE version = ?", (version,))
    logger.info(f"Rolled back migration | version={version}")


def rollback_last(conn) -> Optional[int]:
    """Undo the newest applied migration; None when nothing is applied."""
    versions = _applied_versions(conn)
    if not versions:
        return None
    rollback_migration(conn, versions[-1])
    return versions[-1]
