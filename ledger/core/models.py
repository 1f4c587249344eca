"""ledger.core.models

Core journal models.

The event record is immutable. The ledger's memory is append-only.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from ledger.core.events import EventType, canonical_json


class Event(BaseModel):
    """Immutable journal record of one committed transition."""

    id: str
    seq: int
    type: EventType
    ts: datetime
    subject: str | None = None
    actor: str | None = None
    schema_version: str = "v1"
    payload: dict[str, Any]
    prev_hash: str | None = None
    hash: str

    model_config = {"frozen": True}


def compute_event_hash(
    *,
    prev_hash: str | None,
    event_id: str,
    event_type: EventType,
    ts: datetime,
    payload: dict[str, Any],
    subject: str | None = None,
    actor: str | None = None,
    schema_version: str = "v1",
) -> str:
    """Compute the canonical SHA-256 event hash.

    Hash = sha256(
        prev_hash | ts | event_id | type | schema_version |
        subject | actor | canonical_payload_json
    )
    """

    header_parts = [
        prev_hash or "",
        ts.isoformat(),
        event_id,
        str(event_type),
        schema_version,
        subject or "",
        actor or "",
    ]

    data = "|".join(header_parts) + "|" + canonical_json(payload)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()
