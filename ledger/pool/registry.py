"""ledger.pool.registry

Liquidity pool registry: per-asset counter of uncommitted collateral.

The counter only moves through ``credit`` and ``debit``, both checked. It never
goes negative and never exceeds uint256.
"""

from __future__ import annotations

from ledger.core.database import Database
from ledger.core.time import dt_to_iso, utc_now
from ledger.core.types import checked_add, checked_sub, require_uint


class LiquidityPoolRegistry:
    def __init__(self, db: Database) -> None:
        self.db = db

    def available(self, asset: str) -> int:
        """Zero for an asset never seen."""

        with self.db.read() as conn:
            row = conn.execute(
                "SELECT available FROM liquidity_pools WHERE asset = ?",
                (asset,),
            ).fetchone()
        return 0 if row is None else int(row[0])

    def credit(self, asset: str, amount: int) -> int:
        amt = require_uint(amount, name="amount")
        with self.db.transaction():
            new = checked_add(self.available(asset), amt)
            self._set(asset, new)
        return new

    def debit(self, asset: str, amount: int) -> int:
        amt = require_uint(amount, name="amount")
        with self.db.transaction():
            new = checked_sub(self.available(asset), amt)
            self._set(asset, new)
        return new

    def fees_collected(self, asset: str) -> int:
        """Insurance fees paid for an asset. Tracked apart from the pool counter."""

        with self.db.read() as conn:
            row = conn.execute("SELECT collected FROM fee_balances WHERE asset = ?", (asset,)).fetchone()
        return 0 if row is None else int(row[0])

    def credit_fees(self, asset: str, amount: int) -> int:
        amt = require_uint(amount, name="amount")
        with self.db.transaction() as conn:
            new = checked_add(self.fees_collected(asset), amt)
            conn.execute(
                """
                INSERT INTO fee_balances (asset, collected, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(asset) DO UPDATE SET
                  collected = excluded.collected,
                  updated_at = excluded.updated_at
                """,
                (asset, str(new), dt_to_iso(utc_now())),
            )
        return new

    def list_pools(self) -> dict[str, int]:
        with self.db.read() as conn:
            rows = conn.execute("SELECT asset, available FROM liquidity_pools ORDER BY asset ASC").fetchall()
        return {str(r[0]): int(r[1]) for r in rows}

    def _set(self, asset: str, amount: int) -> None:
        self.db.conn.execute(
            """
            INSERT INTO liquidity_pools (asset, available, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(asset) DO UPDATE SET
              available = excluded.available,
              updated_at = excluded.updated_at
            """,
            (asset, str(amount), dt_to_iso(utc_now())),
        )
