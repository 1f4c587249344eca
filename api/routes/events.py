from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from api.auth import AuthDep
from api.deps import get_db
from api.errors import ApiError
from api.schemas.ledger import EventResponse
from ledger.core.database import Database
from ledger.core.events import EventType

router = APIRouter(prefix="/events", dependencies=[AuthDep])


@router.get("", response_model=list[EventResponse])
def list_events(
    type: str | None = Query(default=None, description="Event type, e.g. insurance.requested.v1"),
    subject: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Database = Depends(get_db),
) -> list[EventResponse]:
    event_type = None
    if type is not None:
        try:
            event_type = EventType(type)
        except ValueError as e:
            raise ApiError(code="events.unknown_type", message=f"Unknown event type: {type}", status=422) from e

    events = db.get_events(event_type=event_type, subject=subject.lower() if subject else None, limit=limit)
    return [
        EventResponse(
            id=e.id,
            seq=e.seq,
            type=str(e.type),
            ts=e.ts,
            subject=e.subject,
            actor=e.actor,
            payload=e.payload,
            prev_hash=e.prev_hash,
            hash=e.hash,
        )
        for e in events
    ]
