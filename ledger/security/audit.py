"""ledger.security.audit

Database-backed audit logger for privileged actions.

The journal records what changed; the audit log records who was allowed to change it.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ledger.core.database import Database
from ledger.core.time import dt_to_iso, utc_now


@dataclass
class AuditLogger:
    """Writes privileged actions to the `audit_log` table.

    Writes join the caller's transaction, so a rolled-back action leaves no audit row.
    """

    db: Database
    component: str = "ledger"

    def log_action(self, action: str, actor: str | None, details: dict[str, Any] | None = None) -> None:
        payload = json.dumps(details or {}, sort_keys=True, default=str)
        with self.db.transaction() as conn:
            conn.execute(
                "INSERT INTO audit_log (ts, action, actor, component, details) VALUES (?, ?, ?, ?, ?)",
                (dt_to_iso(utc_now()), action, actor, self.component, payload),
            )

    def query(
        self,
        action_type: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        q = "SELECT ts, action, actor, component, details FROM audit_log WHERE 1=1"
        params: list[Any] = []

        if action_type is not None:
            q += " AND action = ?"
            params.append(action_type)

        if since is not None:
            q += " AND ts >= ?"
            params.append(dt_to_iso(since))

        q += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self.db.read() as conn:
            rows = conn.execute(q, tuple(params)).fetchall()
        out: list[dict[str, Any]] = []
        for r in rows:
            out.append(
                {
                    "ts": r[0],
                    "action": r[1],
                    "actor": r[2],
                    "component": r[3],
                    "details": json.loads(r[4]) if r[4] else {},
                }
            )
        return out
