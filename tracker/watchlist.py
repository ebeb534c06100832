"""SQLite store of the wallets users have chosen to watch.

The background refresh loop only needs the distinct set of watched
addresses; the small write API exists for seeding and tests.  Addresses are
normalized to lowercase on write so the same wallet added with different
casing is stored once per owner.

Usage::

    with WatchlistStore("data/watchlist.db") as store:
        store.add_address("user-1", "0xABC...", nickname="Whale")
        addresses = store.get_distinct_addresses()
"""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from tracker.addresses import normalize_address


class WatchlistStore:
    """Synchronous SQLite-backed watchlist."""

    def __init__(self, db_path: str = "data/watchlist.db") -> None:
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    def __enter__(self) -> "WatchlistStore":
        return self

    def __exit__(self, *args) -> None:  # noqa: ANN002
        self.close()

    # ------------------------------------------------------------------
    # Schema creation
    # ------------------------------------------------------------------

    def _create_tables(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS watchlist (
                id              INTEGER PRIMARY KEY AUTOINCREMENT,
                owner           TEXT NOT NULL,
                address         TEXT NOT NULL,
                nickname        TEXT,
                created_at      TEXT NOT NULL,
                UNIQUE (owner, address)
            );

            CREATE INDEX IF NOT EXISTS idx_watchlist_address
                ON watchlist(address);
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_address(
        self,
        owner: str,
        address: str,
        nickname: Optional[str] = None,
    ) -> bool:
        """Add *address* to *owner*'s watchlist.

        Returns ``False`` when the owner already watches that address.
        Raises ``InvalidAddressError`` for a malformed address.
        """
        address = normalize_address(address)
        cur = self._conn.execute(
            """
            INSERT OR IGNORE INTO watchlist (owner, address, nickname, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (owner, address, nickname, datetime.now(timezone.utc).isoformat()),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def remove_address(self, owner: str, address: str) -> bool:
        """Remove *address* from *owner*'s watchlist.  Returns whether a row was deleted."""
        cur = self._conn.execute(
            "DELETE FROM watchlist WHERE owner = ? AND address = ?",
            (owner, address.strip().lower()),
        )
        self._conn.commit()
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_for_owner(self, owner: str) -> list[dict]:
        """Return *owner*'s watchlist rows, newest first."""
        rows = self._conn.execute(
            """
            SELECT id, address, nickname, created_at
              FROM watchlist
             WHERE owner = ?
             ORDER BY created_at DESC, id DESC
            """,
            (owner,),
        ).fetchall()
        return [dict(r) for r in rows]

    def get_distinct_addresses(self) -> list[str]:
        """Return every address watched by anyone, ordered by first addition."""
        rows = self._conn.execute(
            """
            SELECT address
              FROM watchlist
             GROUP BY address
             ORDER BY MIN(id)
            """
        ).fetchall()
        return [r["address"] for r in rows]
