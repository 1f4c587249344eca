"""ledger.insurance.registry

Insurance registry: one record per owner.

A keyed store and nothing more. Business rules live in the workflow; the
registry only guarantees that a second write for the same owner replaces the
first, and that scope and chain ids come back in the order they went in.
"""

from __future__ import annotations

import json
import sqlite3

from ledger.core.database import Database
from ledger.core.time import dt_to_iso, iso_to_dt
from ledger.core.types import (
    EMPTY_INSURANCE,
    Insurance,
    InsurancePayment,
    InsuranceStatus,
    InsuranceToken,
)

_COLUMNS = (
    "owner, admin, status, token_address, insurance_amount, insurance_price, payment_deadline, "
    "scss, protocol_name, protocol_website, contact_information, created_at, updated_at"
)


class InsuranceRegistry:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get(self, owner: str) -> Insurance:
        """The owner's record, or the zero-value record when none exists."""

        with self._db.read() as conn:
            row = conn.execute(f"SELECT {_COLUMNS} FROM insurances WHERE owner = ?", (owner,)).fetchone()
            if row is None:
                return EMPTY_INSURANCE
            return self._row_to_insurance(row)

    def put(self, owner: str, insurance: Insurance) -> None:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO insurances (
                  owner, admin, status, token_address, insurance_amount, insurance_price,
                  payment_deadline, scss, protocol_name, protocol_website, contact_information,
                  created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(owner) DO UPDATE SET
                  admin = excluded.admin,
                  status = excluded.status,
                  token_address = excluded.token_address,
                  insurance_amount = excluded.insurance_amount,
                  insurance_price = excluded.insurance_price,
                  payment_deadline = excluded.payment_deadline,
                  scss = excluded.scss,
                  protocol_name = excluded.protocol_name,
                  protocol_website = excluded.protocol_website,
                  contact_information = excluded.contact_information,
                  updated_at = excluded.updated_at
                """,
                (
                    owner,
                    insurance.admin,
                    str(insurance.status),
                    insurance.token.token_address,
                    str(insurance.token.insurance_amount),
                    str(insurance.payment.insurance_price),
                    dt_to_iso(insurance.payment.payment_deadline),
                    json.dumps(list(insurance.scss)),
                    insurance.protocol_name,
                    insurance.protocol_website,
                    insurance.contact_information,
                    dt_to_iso(insurance.created_at),
                    dt_to_iso(insurance.updated_at),
                ),
            )
            conn.execute("DELETE FROM insurance_scope WHERE owner = ?", (owner,))
            conn.executemany(
                "INSERT INTO insurance_scope (owner, position, contract, chain_id) VALUES (?, ?, ?, ?)",
                [(owner, i, c, str(cid)) for i, (c, cid) in enumerate(zip(insurance.scope, insurance.chain_ids))],
            )

    def delete(self, owner: str) -> bool:
        with self._db.transaction() as conn:
            conn.execute("DELETE FROM insurance_scope WHERE owner = ?", (owner,))
            cur = conn.execute("DELETE FROM insurances WHERE owner = ?", (owner,))
        return cur.rowcount > 0

    def find_by_contract(self, contract: str) -> list[tuple[str, Insurance]]:
        """Every live record whose scope lists the covered contract."""

        with self._db.read() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM insurances
                WHERE owner IN (SELECT DISTINCT owner FROM insurance_scope WHERE contract = ?)
                ORDER BY created_at ASC, owner ASC
                """,
                (contract,),
            ).fetchall()
            return [(str(r["owner"]), self._row_to_insurance(r)) for r in rows]

    def list_all(self) -> list[tuple[str, Insurance]]:
        with self._db.read() as conn:
            rows = conn.execute(f"SELECT {_COLUMNS} FROM insurances ORDER BY created_at ASC, owner ASC").fetchall()
            return [(str(r["owner"]), self._row_to_insurance(r)) for r in rows]

    def reserved_total(self, asset: str) -> int:
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT insurance_amount FROM insurances WHERE token_address = ?",
                (asset,),
            ).fetchall()
        return sum(int(r[0]) for r in rows)

    def _scope_of(self, owner: str) -> tuple[tuple[str, ...], tuple[int, ...]]:
        with self._db.read() as conn:
            rows = conn.execute(
                "SELECT contract, chain_id FROM insurance_scope WHERE owner = ? ORDER BY position ASC",
                (owner,),
            ).fetchall()
        return tuple(str(r[0]) for r in rows), tuple(int(r[1]) for r in rows)

    def _row_to_insurance(self, row: sqlite3.Row) -> Insurance:
        scope, chain_ids = self._scope_of(str(row["owner"]))
        return Insurance(
            scope=scope,
            scss=tuple(int(s) for s in json.loads(str(row["scss"]))),
            chain_ids=chain_ids,
            token=InsuranceToken(
                insurance_amount=int(row["insurance_amount"]),
                token_address=str(row["token_address"]),
            ),
            payment=InsurancePayment(
                insurance_price=int(row["insurance_price"]),
                payment_deadline=iso_to_dt(row["payment_deadline"]),
            ),
            status=InsuranceStatus(str(row["status"])),
            admin=str(row["admin"]),
            protocol_name=str(row["protocol_name"]),
            protocol_website=str(row["protocol_website"]),
            contact_information=str(row["contact_information"]),
            created_at=iso_to_dt(row["created_at"]),
            updated_at=iso_to_dt(row["updated_at"]),
        )
