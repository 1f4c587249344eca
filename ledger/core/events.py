"""ledger.core.events

The event contract is the notification surface.

One event per successful transition, appended in the same transaction as the
state change it describes. A failed operation leaves no event behind.
"""

from __future__ import annotations

import json
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class EventType(StrEnum):
    """Canonical event type registry.

    Naming: ``{category}.{name}.{version}``.
    """

    # Insurance lifecycle
    INSURANCE_REQUESTED_V1 = "insurance.requested.v1"
    INSURANCE_APPROVED_V1 = "insurance.approved.v1"
    INSURANCE_REJECTED_V1 = "insurance.rejected.v1"
    COVER_REQUESTED_V1 = "insurance.cover_requested.v1"
    COVER_APPROVED_V1 = "insurance.cover_approved.v1"
    COVER_REJECTED_V1 = "insurance.cover_rejected.v1"
    COVER_REJECTION_ACCEPTED_V1 = "insurance.cover_rejection_accepted.v1"
    FUNDS_UNLOCKED_V1 = "insurance.funds_unlocked.v1"
    INSURANCE_DELETED_V1 = "insurance.deleted.v1"
    INSURANCE_FEE_PAID_V1 = "insurance.fee_paid.v1"
    INSURANCE_ADMIN_CHANGED_V1 = "insurance.admin_changed.v1"
    INSURANCE_AMOUNT_CHANGED_V1 = "insurance.amount_changed.v1"

    # Liquidity
    LIQUIDITY_ADDED_V1 = "liquidity.added.v1"
    LIQUIDITY_REMOVED_V1 = "liquidity.removed.v1"

    # Access control
    ROLE_GRANTED_V1 = "access.role_granted.v1"
    ROLE_REVOKED_V1 = "access.role_revoked.v1"
    ADMIN_TRANSFER_STARTED_V1 = "access.admin_transfer_started.v1"
    ADMIN_TRANSFER_CANCELED_V1 = "access.admin_transfer_canceled.v1"
    ADMIN_TRANSFERRED_V1 = "access.admin_transferred.v1"


# -----------------
# Typed payloads
# -----------------


class InsuranceTokenPayload(BaseModel):
    insurance_amount: int
    token_address: str


class InsuranceRequestedPayload(BaseModel):
    """Payload for :pydata:`~ledger.core.events.EventType.INSURANCE_REQUESTED_V1`."""

    owner: str
    protocol_name: str
    protocol_website: str
    contact_information: str
    scope: list[str]
    chain_ids: list[int]
    insurance_token: InsuranceTokenPayload


class InsuranceApprovedPayload(BaseModel):
    owner: str
    scss: list[int]
    insurance_price: int
    payment_deadline: datetime


class InsuranceRejectedPayload(BaseModel):
    owner: str
    reason: str
    released_amount: int
    token_address: str


class CoverPayload(BaseModel):
    owner: str
    actor: str
    reason: str = ""


class FundsUnlockedPayload(BaseModel):
    owner: str
    to: str
    token_address: str
    amount: int


class InsuranceDeletedPayload(BaseModel):
    owner: str
    deleted_by: str
    lapsed: bool
    released_amount: int
    token_address: str


class InsuranceFeePaidPayload(BaseModel):
    owner: str
    payer: str
    token_address: str
    amount: int
    payment_deadline: datetime


class InsuranceAdminChangedPayload(BaseModel):
    owner: str
    previous_admin: str
    new_admin: str


class InsuranceAmountChangedPayload(BaseModel):
    owner: str
    token_address: str
    previous_amount: int
    new_amount: int
    insurance_price: int


class LiquidityAddedPayload(BaseModel):
    asset: str
    amount: int
    provider: str


class LiquidityRemovedPayload(BaseModel):
    asset: str
    amount: int
    to: str


class RoleChangedPayload(BaseModel):
    role: str
    account: str
    sender: str


class AdminTransferPayload(BaseModel):
    current_admin: str
    new_admin: str
    accept_after: datetime | None = None


_EVENT_PAYLOAD_MODELS: dict[EventType, type[BaseModel]] = {
    EventType.INSURANCE_REQUESTED_V1: InsuranceRequestedPayload,
    EventType.INSURANCE_APPROVED_V1: InsuranceApprovedPayload,
    EventType.INSURANCE_REJECTED_V1: InsuranceRejectedPayload,
    EventType.COVER_REQUESTED_V1: CoverPayload,
    EventType.COVER_APPROVED_V1: CoverPayload,
    EventType.COVER_REJECTED_V1: CoverPayload,
    EventType.COVER_REJECTION_ACCEPTED_V1: CoverPayload,
    EventType.FUNDS_UNLOCKED_V1: FundsUnlockedPayload,
    EventType.INSURANCE_DELETED_V1: InsuranceDeletedPayload,
    EventType.INSURANCE_FEE_PAID_V1: InsuranceFeePaidPayload,
    EventType.INSURANCE_ADMIN_CHANGED_V1: InsuranceAdminChangedPayload,
    EventType.INSURANCE_AMOUNT_CHANGED_V1: InsuranceAmountChangedPayload,
    # Liquidity
    EventType.LIQUIDITY_ADDED_V1: LiquidityAddedPayload,
    EventType.LIQUIDITY_REMOVED_V1: LiquidityRemovedPayload,
    # Access control
    EventType.ROLE_GRANTED_V1: RoleChangedPayload,
    EventType.ROLE_REVOKED_V1: RoleChangedPayload,
    EventType.ADMIN_TRANSFER_STARTED_V1: AdminTransferPayload,
    EventType.ADMIN_TRANSFER_CANCELED_V1: AdminTransferPayload,
    EventType.ADMIN_TRANSFERRED_V1: AdminTransferPayload,
}


def payload_model_for(event_type: EventType) -> type[BaseModel] | None:
    return _EVENT_PAYLOAD_MODELS.get(event_type)


def canonical_json(data: Any) -> str:
    """Canonical JSON serialization used for hashing."""

    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
