from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

# uint256 amounts are rendered as decimal strings.


class PoolResponse(BaseModel):
    asset: str
    available: str
    reserved: str
    fees_collected: str


class InsuranceResponse(BaseModel):
    owner: str
    admin: str
    status: str
    stored_status: str
    protocol_name: str
    protocol_website: str
    contact_information: str
    scope: list[str]
    scss: list[int]
    chain_ids: list[int]
    token_address: str
    insurance_amount: str
    insurance_price: str
    payment_deadline: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EventResponse(BaseModel):
    id: str
    seq: int
    type: str
    ts: datetime
    subject: str | None = None
    actor: str | None = None
    payload: dict[str, Any]
    prev_hash: str | None = None
    hash: str
