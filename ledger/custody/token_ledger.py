"""ledger.custody.token_ledger

Paper custody adapter.

Standard fungible-token accounting (balances, allowances, ``transferFrom``
pulls) persisted in the ledger database. Because it shares the database, a
failed ledger operation rolls the token movements back with everything else.

An allowance of ``UINT256_MAX`` is treated as unlimited and is never decremented.
"""

from __future__ import annotations

import logging

from ledger import UINT256_MAX, ZERO_ADDRESS
from ledger.core.database import Database
from ledger.core.exceptions import InsufficientAllowanceError, InsufficientBalanceError, InvalidAddressError
from ledger.core.types import checked_add, checked_sub, normalize_address, normalize_asset, require_uint

logger = logging.getLogger(__name__)


class TokenLedger:
    """Writes token balances + allowances into the shared DB."""

    def __init__(self, db: Database, *, custody_address: str) -> None:
        self.db = db
        self.custody_address = normalize_address(custody_address)
        if self.custody_address == ZERO_ADDRESS:
            raise InvalidAddressError(custody_address)

    # -----------------
    # Token reads
    # -----------------

    def balance_of(self, asset: str, holder: str) -> int:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT amount FROM token_balances WHERE asset = ? AND holder = ?",
                (normalize_asset(asset), normalize_address(holder)),
            ).fetchone()
        return 0 if row is None else int(row[0])

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT amount FROM token_allowances WHERE asset = ? AND owner = ? AND spender = ?",
                (normalize_asset(asset), normalize_address(owner), normalize_address(spender)),
            ).fetchone()
        return 0 if row is None else int(row[0])

    def total_supply(self, asset: str) -> int:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT amount FROM token_balances WHERE asset = ?",
                (normalize_asset(asset),),
            ).fetchall()
        return sum(int(r[0]) for r in rows)

    def custody_balance(self, asset: str) -> int:
        return self.balance_of(asset, self.custody_address)

    # -----------------
    # Token writes
    # -----------------

    def mint(self, asset: str, to: str, amount: int) -> None:
        a = normalize_asset(asset)
        dst = normalize_address(to)
        amt = require_uint(amount, name="amount")
        with self.db.transaction():
            self._set_balance(a, dst, checked_add(self.balance_of(a, dst), amt))

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        a = normalize_asset(asset)
        amt = require_uint(amount, name="amount")
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO token_allowances (asset, owner, spender, amount) VALUES (?, ?, ?, ?)
                ON CONFLICT(asset, owner, spender) DO UPDATE SET amount = excluded.amount
                """,
                (a, normalize_address(owner), normalize_address(spender), str(amt)),
            )

    def transfer(self, asset: str, source: str, to: str, amount: int) -> None:
        a = normalize_asset(asset)
        src = normalize_address(source)
        dst = normalize_address(to)
        amt = require_uint(amount, name="amount")

        with self.db.transaction():
            have = self.balance_of(a, src)
            if have < amt:
                raise InsufficientBalanceError(src, a, have, amt)
            self._set_balance(a, src, have - amt)
            self._set_balance(a, dst, checked_add(self.balance_of(a, dst), amt))

    # -----------------
    # AssetCustody
    # -----------------

    def transfer_into(self, asset: str, source: str, amount: int) -> None:
        a = normalize_asset(asset)
        src = normalize_address(source)
        amt = require_uint(amount, name="amount")

        with self.db.transaction():
            allowed = self.allowance(a, src, self.custody_address)
            if allowed < amt:
                raise InsufficientAllowanceError(src, self.custody_address, a, allowed, amt)
            self.transfer(a, src, self.custody_address, amt)
            if allowed != UINT256_MAX:
                self.approve(a, src, self.custody_address, checked_sub(allowed, amt))

        logger.debug("custody_pull", extra={"asset": a, "source": src, "amount": str(amt)})

    def transfer_out(self, asset: str, to: str, amount: int) -> None:
        a = normalize_asset(asset)
        dst = normalize_address(to)
        self.transfer(a, self.custody_address, dst, amount)
        logger.debug("custody_push", extra={"asset": a, "to": dst, "amount": str(amount)})

    def _set_balance(self, asset: str, holder: str, amount: int) -> None:
        self.db.conn.execute(
            """
            INSERT INTO token_balances (asset, holder, amount) VALUES (?, ?, ?)
            ON CONFLICT(asset, holder) DO UPDATE SET amount = excluded.amount
            """,
            (asset, holder, str(amount)),
        )
