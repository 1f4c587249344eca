"""ledger.core.types

Lightweight dataclasses for ledger records.

Pydantic models own IO boundaries (events, API); dataclasses keep the ledger lean.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from ledger import UINT256_MAX, ZERO_ADDRESS
from ledger.core.exceptions import (
    ArithmeticOverflowError,
    ArithmeticUnderflowError,
    InvalidAddressError,
)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def normalize_address(value: object) -> str:
    """Canonical lower-case ``0x`` address. Raises InvalidAddressError."""

    if not isinstance(value, str) or not _ADDRESS_RE.match(value.strip()):
        raise InvalidAddressError(value)
    return value.strip().lower()


def normalize_asset(value: object) -> str:
    """An asset is any address except the sentinel."""

    addr = normalize_address(value)
    if addr == ZERO_ADDRESS:
        raise InvalidAddressError(value)
    return addr


def require_uint(value: object, *, name: str = "value") -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ArithmeticUnderflowError(f"{name} is negative: {value}")
    if value > UINT256_MAX:
        raise ArithmeticOverflowError(f"{name} exceeds uint256: {value}")
    return value


def checked_add(a: int, b: int) -> int:
    out = int(a) + int(b)
    if out > UINT256_MAX:
        raise ArithmeticOverflowError(f"{a} + {b} overflows uint256")
    return out


def checked_sub(a: int, b: int) -> int:
    out = int(a) - int(b)
    if out < 0:
        raise ArithmeticUnderflowError(f"{a} - {b} underflows")
    return out


class InsuranceStatus(StrEnum):
    NONE = "none"
    REQUESTED = "requested"
    APPROVED = "approved"
    PENDING_PAYMENT = "pending_payment"
    EXPIRED = "expired"
    COVER_REQUESTED = "cover_requested"
    COVER_APPROVED = "cover_approved"
    COVER_REJECTED = "cover_rejected"
    # Terminal outcomes. The record is removed; only the journal remembers.
    REJECTED = "rejected"
    FUNDS_UNLOCKED = "funds_unlocked"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class InsuranceToken:
    insurance_amount: int = 0
    token_address: str = ZERO_ADDRESS


@dataclass(frozen=True, slots=True)
class InsurancePayment:
    """Yearly price and the next due date. ``(0, None)`` = not yet priced."""

    insurance_price: int = 0
    payment_deadline: datetime | None = None


@dataclass(frozen=True, slots=True)
class Insurance:
    """One insurance record.

    ``scope[i]``, ``scss[i]`` and ``chain_ids[i]`` describe the same covered contract.
    ``scss`` stays empty until approval.
    """

    scope: tuple[str, ...] = ()
    scss: tuple[int, ...] = ()
    chain_ids: tuple[int, ...] = ()
    token: InsuranceToken = field(default_factory=InsuranceToken)
    payment: InsurancePayment = field(default_factory=InsurancePayment)
    status: InsuranceStatus = InsuranceStatus.NONE
    admin: str = ZERO_ADDRESS
    protocol_name: str = ""
    protocol_website: str = ""
    contact_information: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def exists(self) -> bool:
        return self.token.token_address != ZERO_ADDRESS

    def covers(self, contract_address: str) -> bool:
        return contract_address in self.scope


EMPTY_INSURANCE = Insurance()
