"""ledger.core.database

The ledger's single store: liquidity pools, insurance records, custody balances,
role membership, and the append-only event journal with a hash chain.

Every ledger operation runs inside one ``transaction()``. Either all of its
writes land, or none do.
"""

from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from ledger.core.events import EventType, canonical_json, payload_model_for
from ledger.core.exceptions import EventStoreError
from ledger.core.models import Event, compute_event_hash
from ledger.core.time import dt_to_iso, ensure_utc, iso_to_dt, utc_now

SCHEMA_VERSION = 1

SCHEMA = """
-- ============================================================
-- Schema Version Tracking
-- ============================================================
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT DEFAULT (datetime('now'))
);

-- ============================================================
-- Event Journal (hash chain, append-only)
-- ============================================================
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    seq INTEGER NOT NULL UNIQUE,
    type TEXT NOT NULL,
    ts TEXT NOT NULL,
    subject TEXT,
    actor TEXT,
    schema_version TEXT DEFAULT 'v1',
    payload TEXT NOT NULL,
    prev_hash TEXT,
    hash TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_events_type ON events(type);
CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
CREATE INDEX IF NOT EXISTS idx_events_subject ON events(subject);

-- ============================================================
-- Liquidity Pools (uncommitted collateral per asset)
-- Amounts are uint256, stored as decimal text.
-- ============================================================
CREATE TABLE IF NOT EXISTS liquidity_pools (
    asset TEXT PRIMARY KEY,
    available TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- ============================================================
-- Collected insurance fees (outside the pool counter)
-- ============================================================
CREATE TABLE IF NOT EXISTS fee_balances (
    asset TEXT PRIMARY KEY,
    collected TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- ============================================================
-- Insurance Records (one per owner)
-- ============================================================
CREATE TABLE IF NOT EXISTS insurances (
    owner TEXT PRIMARY KEY,
    admin TEXT NOT NULL,
    status TEXT NOT NULL CHECK(status IN (
        'requested', 'approved', 'cover_requested', 'cover_approved', 'cover_rejected'
    )),
    token_address TEXT NOT NULL,
    insurance_amount TEXT NOT NULL,
    insurance_price TEXT NOT NULL DEFAULT '0',
    payment_deadline TEXT,
    scss TEXT NOT NULL DEFAULT '[]',
    protocol_name TEXT NOT NULL DEFAULT '',
    protocol_website TEXT NOT NULL DEFAULT '',
    contact_information TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_insurances_token ON insurances(token_address);
CREATE INDEX IF NOT EXISTS idx_insurances_status ON insurances(status);

CREATE TABLE IF NOT EXISTS insurance_scope (
    owner TEXT NOT NULL REFERENCES insurances(owner) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    contract TEXT NOT NULL,
    chain_id TEXT NOT NULL,
    PRIMARY KEY (owner, position)
);

CREATE INDEX IF NOT EXISTS idx_insurance_scope_contract ON insurance_scope(contract);

-- ============================================================
-- Role Directory
-- ============================================================
CREATE TABLE IF NOT EXISTS role_members (
    role TEXT NOT NULL,
    account TEXT NOT NULL,
    granted_by TEXT,
    granted_at TEXT NOT NULL,
    PRIMARY KEY (role, account)
);

CREATE TABLE IF NOT EXISTS admin_transfers (
    id INTEGER PRIMARY KEY CHECK(id = 1),
    new_admin TEXT NOT NULL,
    accept_after TEXT NOT NULL,
    scheduled_at TEXT NOT NULL
);

-- ============================================================
-- Paper token custody
-- ============================================================
CREATE TABLE IF NOT EXISTS token_balances (
    asset TEXT NOT NULL,
    holder TEXT NOT NULL,
    amount TEXT NOT NULL,
    PRIMARY KEY (asset, holder)
);

CREATE TABLE IF NOT EXISTS token_allowances (
    asset TEXT NOT NULL,
    owner TEXT NOT NULL,
    spender TEXT NOT NULL,
    amount TEXT NOT NULL,
    PRIMARY KEY (asset, owner, spender)
);

-- ============================================================
-- Audit Log
-- ============================================================
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    ts TEXT DEFAULT (datetime('now')),
    action TEXT NOT NULL,
    actor TEXT,
    component TEXT,
    details TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_ts ON audit_log(ts);
CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_log(action);
"""


@dataclass
class Database:
    """SQLite ledger store with an explicit transaction boundary and a hash-chained journal."""

    db_path: Path
    _depth: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are opened explicitly by transaction().
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_schema()
        self._last_hash, self._last_seq = self._get_chain_head()

    def close(self) -> None:
        self.conn.close()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

    def _get_chain_head(self) -> tuple[str | None, int]:
        row = self.conn.execute("SELECT hash, seq FROM events ORDER BY seq DESC LIMIT 1").fetchone()
        if row is None:
            return None, 0
        return str(row[0]), int(row[1])

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """One indivisible unit of work.

        Nested calls join the outermost transaction. Any exception rolls back
        every write made since the outermost ``transaction()`` was entered.
        """

        with self._lock:
            if self._depth > 0:
                self._depth += 1
                try:
                    yield self.conn
                finally:
                    self._depth -= 1
                return

            head = (self._last_hash, self._last_seq)
            self.conn.execute("BEGIN IMMEDIATE")
            self._depth = 1
            try:
                yield self.conn
            except BaseException:
                self.conn.execute("ROLLBACK")
                self._last_hash, self._last_seq = head
                raise
            else:
                self.conn.execute("COMMIT")
            finally:
                self._depth = 0

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Connection for reads. Blocks while another thread holds a transaction open."""

        with self._lock:
            yield self.conn

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def append_event(
        self,
        *,
        event_type: EventType,
        payload: BaseModel | dict[str, Any],
        subject: str | None = None,
        actor: str | None = None,
        schema_version: str = "v1",
        ts: datetime | None = None,
    ) -> Event:
        """Append a single event to the journal.

        Dict payloads are validated against the registered payload model for
        the event type, if any.
        """

        if isinstance(payload, BaseModel):
            data = payload.model_dump(mode="json")
        else:
            model = payload_model_for(event_type)
            data = model.model_validate(payload).model_dump(mode="json") if model else dict(payload)

        with self.transaction():
            now = ensure_utc(ts or utc_now())
            payload_canon = json.loads(canonical_json(data))
            eid = str(uuid.uuid4())
            prev = self._last_hash
            seq = self._last_seq + 1
            h = compute_event_hash(
                prev_hash=prev,
                event_id=eid,
                event_type=event_type,
                ts=now,
                payload=payload_canon,
                subject=subject,
                actor=actor,
                schema_version=schema_version,
            )

            try:
                self.conn.execute(
                    """
                    INSERT INTO events (
                        id, seq, type, ts, subject, actor, schema_version, payload, prev_hash, hash
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        eid,
                        seq,
                        str(event_type),
                        dt_to_iso(now),
                        subject,
                        actor,
                        schema_version,
                        canonical_json(payload_canon),
                        prev,
                        h,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise EventStoreError(str(e)) from e

            self._last_hash = h
            self._last_seq = seq
            return Event(
                id=eid,
                seq=seq,
                type=event_type,
                ts=now,
                subject=subject,
                actor=actor,
                schema_version=schema_version,
                payload=payload_canon,
                prev_hash=prev,
                hash=h,
            )

    def get_events(
        self,
        *,
        event_type: EventType | None = None,
        subject: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> list[Event]:
        """Most recent first."""

        q = "SELECT * FROM events WHERE 1=1"
        params: list[Any] = []
        if event_type is not None:
            q += " AND type = ?"
            params.append(str(event_type))
        if subject is not None:
            q += " AND subject = ?"
            params.append(subject)
        if since is not None:
            q += " AND ts >= ?"
            params.append(dt_to_iso(since))
        if until is not None:
            q += " AND ts <= ?"
            params.append(dt_to_iso(until))
        q += " ORDER BY seq DESC LIMIT ?"
        params.append(limit)

        with self.read() as conn:
            rows = conn.execute(q, tuple(params)).fetchall()
        return [self._row_to_event(r) for r in rows]

    def count_events(self) -> int:
        with self.read() as conn:
            row = conn.execute("SELECT COUNT(*) FROM events").fetchone()
        return int(row[0])

    def verify_hash_chain(self) -> bool:
        with self.read() as conn:
            rows = conn.execute("SELECT * FROM events ORDER BY seq ASC").fetchall()
        prev: str | None = None
        for row in rows:
            if row["prev_hash"] != prev:
                return False
            expected = compute_event_hash(
                prev_hash=prev,
                event_id=str(row["id"]),
                event_type=EventType(str(row["type"])),
                ts=iso_to_dt(str(row["ts"])),
                payload=json.loads(str(row["payload"])),
                subject=row["subject"],
                actor=row["actor"],
                schema_version=str(row["schema_version"]),
            )
            if expected != str(row["hash"]):
                return False
            prev = expected
        return True

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        return Event(
            id=str(row["id"]),
            seq=int(row["seq"]),
            type=EventType(str(row["type"])),
            ts=iso_to_dt(str(row["ts"])),
            subject=row["subject"],
            actor=row["actor"],
            schema_version=str(row["schema_version"]),
            payload=json.loads(row["payload"]),
            prev_hash=row["prev_hash"],
            hash=str(row["hash"]),
        )
