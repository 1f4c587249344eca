"""ledger.insurance.state

Insurance state machine.

    NONE → REQUESTED → APPROVED | REJECTED
    APPROVED → COVER_REQUESTED → COVER_APPROVED | COVER_REJECTED
    COVER_REJECTED → APPROVED            (rejection accepted)
    COVER_APPROVED → FUNDS_UNLOCKED      (payout)
    APPROVED ⇄ PENDING_PAYMENT → EXPIRED (lazy, from the payment deadline)
    anything but FUNDS_UNLOCKED → DELETED

Only REQUESTED, APPROVED and the three cover states are ever stored.
PENDING_PAYMENT and EXPIRED are derived from a stored APPROVED record and the
time the current operation observes. REJECTED, FUNDS_UNLOCKED and DELETED
remove the record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Final

from ledger.core.exceptions import InvalidInsuranceStateError
from ledger.core.types import Insurance, InsuranceStatus

S = InsuranceStatus

ALLOWED_TRANSITIONS: Final[dict[InsuranceStatus, set[InsuranceStatus]]] = {
    S.NONE: {S.REQUESTED},
    S.REQUESTED: {S.APPROVED, S.REJECTED, S.DELETED},
    S.APPROVED: {S.COVER_REQUESTED, S.PENDING_PAYMENT, S.EXPIRED, S.DELETED},
    S.PENDING_PAYMENT: {S.APPROVED, S.COVER_REQUESTED, S.EXPIRED, S.DELETED},
    S.EXPIRED: {S.DELETED},
    S.COVER_REQUESTED: {S.COVER_APPROVED, S.COVER_REJECTED, S.DELETED},
    S.COVER_REJECTED: {S.APPROVED, S.DELETED},
    S.COVER_APPROVED: {S.FUNDS_UNLOCKED, S.DELETED},
    S.REJECTED: set(),
    S.FUNDS_UNLOCKED: set(),
    S.DELETED: set(),
}

STORED_STATES: Final[frozenset[InsuranceStatus]] = frozenset(
    {S.REQUESTED, S.APPROVED, S.COVER_REQUESTED, S.COVER_APPROVED, S.COVER_REJECTED}
)

# Coverage is in force: a cover can be claimed and the amount can be changed.
ACTIVE_STATES: Final[frozenset[InsuranceStatus]] = frozenset({S.APPROVED, S.PENDING_PAYMENT})


def effective_status(insurance: Insurance, *, now: datetime, payment_window: timedelta) -> InsuranceStatus:
    """Resolve the status an operation at ``now`` sees."""

    if not insurance.exists:
        return S.NONE
    if insurance.status is not S.APPROVED:
        return insurance.status

    deadline = insurance.payment.payment_deadline
    if deadline is None:
        return S.APPROVED
    if now > deadline:
        return S.EXPIRED
    if now >= deadline - payment_window:
        return S.PENDING_PAYMENT
    return S.APPROVED


@dataclass(frozen=True, slots=True)
class InsuranceTransition:
    owner: str
    previous: InsuranceStatus
    new: InsuranceStatus
    operation: str


class InsuranceStateMachine:
    def transition(
        self,
        *,
        owner: str,
        state: InsuranceStatus,
        new_state: InsuranceStatus,
        operation: str,
    ) -> InsuranceTransition:
        allowed = ALLOWED_TRANSITIONS.get(state, set())
        if new_state not in allowed:
            raise InvalidInsuranceStateError(owner, state, operation)
        return InsuranceTransition(owner=owner, previous=state, new=new_state, operation=operation)

    def can(self, *, state: InsuranceStatus, new_state: InsuranceStatus) -> bool:
        return new_state in ALLOWED_TRANSITIONS.get(state, set())
