from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from ledger.core.exceptions import InvalidInsuranceStateError
from ledger.core.types import EMPTY_INSURANCE, Insurance, InsurancePayment, InsuranceStatus, InsuranceToken
from ledger.insurance.state import ALLOWED_TRANSITIONS, STORED_STATES, InsuranceStateMachine, effective_status
from tests.unit._ledger_helpers import USDC

S = InsuranceStatus
T0 = datetime(2026, 1, 1, tzinfo=UTC)
WINDOW = timedelta(days=30)


def _approved(deadline: datetime | None) -> Insurance:
    return Insurance(
        token=InsuranceToken(insurance_amount=1, token_address=USDC),
        payment=InsurancePayment(insurance_price=1, payment_deadline=deadline),
        status=S.APPROVED,
    )


def test_every_status_has_a_transition_entry() -> None:
    assert set(ALLOWED_TRANSITIONS) == set(InsuranceStatus)


def test_terminal_outcomes_are_never_stored() -> None:
    assert not STORED_STATES & {S.REJECTED, S.FUNDS_UNLOCKED, S.DELETED, S.PENDING_PAYMENT, S.EXPIRED}


def test_invalid_transition_raises() -> None:
    sm = InsuranceStateMachine()
    with pytest.raises(InvalidInsuranceStateError) as ei:
        sm.transition(owner="0x1", state=S.REQUESTED, new_state=S.COVER_REQUESTED, operation="request_cover")
    assert ei.value.status == "requested"


def test_cover_flow_is_allowed() -> None:
    sm = InsuranceStateMachine()
    assert sm.can(state=S.APPROVED, new_state=S.COVER_REQUESTED)
    assert sm.can(state=S.COVER_REQUESTED, new_state=S.COVER_APPROVED)
    assert sm.can(state=S.COVER_REJECTED, new_state=S.APPROVED)
    assert sm.can(state=S.COVER_APPROVED, new_state=S.FUNDS_UNLOCKED)
    assert not sm.can(state=S.EXPIRED, new_state=S.COVER_REQUESTED)
    assert not sm.can(state=S.FUNDS_UNLOCKED, new_state=S.DELETED)


def test_effective_status_follows_the_deadline() -> None:
    deadline = T0 + timedelta(days=365)
    ins = _approved(deadline)

    assert effective_status(ins, now=T0, payment_window=WINDOW) is S.APPROVED
    assert effective_status(ins, now=deadline - WINDOW, payment_window=WINDOW) is S.PENDING_PAYMENT
    assert effective_status(ins, now=deadline, payment_window=WINDOW) is S.PENDING_PAYMENT
    assert effective_status(ins, now=deadline + timedelta(seconds=1), payment_window=WINDOW) is S.EXPIRED


def test_effective_status_leaves_other_states_alone() -> None:
    cover = replace(_approved(T0), status=S.COVER_REQUESTED)
    assert effective_status(cover, now=T0 + timedelta(days=999), payment_window=WINDOW) is S.COVER_REQUESTED
    assert effective_status(EMPTY_INSURANCE, now=T0, payment_window=WINDOW) is S.NONE
    assert effective_status(_approved(None), now=T0, payment_window=WINDOW) is S.APPROVED
