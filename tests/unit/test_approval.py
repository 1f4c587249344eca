from __future__ import annotations

from datetime import timedelta

import pytest

from ledger.core.events import EventType
from ledger.core.exceptions import (
    AlreadyApprovedError,
    InvalidScoreError,
    MissingRoleError,
    NotRequestedError,
    ScopeScoreSizeMismatchError,
)
from ledger.core.types import InsuranceStatus
from tests.unit._ledger_helpers import (
    CONTRACT_A,
    CONTRACT_B,
    COVER_AUDITOR,
    INSURANCE_AUDITOR,
    OWNER,
    USDC,
    approve,
    request,
    seed_liquidity,
)


@pytest.fixture()
def requested(workflow, custody):
    seed_liquidity(workflow, custody, USDC, 1000)
    request(workflow, amount=100, scope=(CONTRACT_A, CONTRACT_B), chain_ids=(1, 137))
    return workflow


def test_approve_scores_and_prices(requested, clock, db) -> None:
    ins = requested.approve_insurance(INSURANCE_AUDITOR, OWNER, [90, 40])

    assert ins.status is InsuranceStatus.APPROVED
    assert ins.scss == (90, 40)
    assert ins.payment.insurance_price == 2
    assert ins.payment.payment_deadline == clock.now + timedelta(days=365)
    assert requested.insurance_of(OWNER) == ins
    assert requested.get_available_liquidity(USDC) == 900

    ev = db.get_events(event_type=EventType.INSURANCE_APPROVED_V1)[0]
    assert ev.actor == INSURANCE_AUDITOR
    assert ev.payload["scss"] == [90, 40]


def test_approve_requires_insurance_auditor(requested) -> None:
    with pytest.raises(MissingRoleError) as ei:
        requested.approve_insurance(COVER_AUDITOR, OWNER, [1, 2])
    assert ei.value.role == "insurance_auditor"
    assert requested.insurance_of(OWNER).status is InsuranceStatus.REQUESTED


def test_role_is_checked_before_existence(workflow) -> None:
    with pytest.raises(MissingRoleError):
        workflow.approve_insurance(OWNER, OWNER, [1])


def test_approve_unknown_owner(requested) -> None:
    with pytest.raises(NotRequestedError):
        requested.approve_insurance(INSURANCE_AUDITOR, INSURANCE_AUDITOR, [1])


def test_approve_twice(requested) -> None:
    approve(requested)
    with pytest.raises(AlreadyApprovedError):
        approve(requested)


def test_scores_must_align_with_scope(requested) -> None:
    with pytest.raises(ScopeScoreSizeMismatchError) as ei:
        requested.approve_insurance(INSURANCE_AUDITOR, OWNER, [1])
    assert (ei.value.scope_length, ei.value.scss_length) == (2, 1)


@pytest.mark.parametrize("bad", [256, -1, True, 1.5])
def test_scores_are_bytes(requested, bad) -> None:
    with pytest.raises(InvalidScoreError) as ei:
        requested.approve_insurance(INSURANCE_AUDITOR, OWNER, [7, bad])
    assert ei.value.index == 1
    assert requested.insurance_of(OWNER).scss == ()


def test_reject_releases_the_reservation(requested, db) -> None:
    released = requested.reject_insurance(INSURANCE_AUDITOR, OWNER, "scope too broad")

    assert released == 100
    assert requested.get_available_liquidity(USDC) == 1000
    assert not requested.insurance_of(OWNER).exists
    assert requested.get_insurance(CONTRACT_A) == []

    ev = db.get_events(event_type=EventType.INSURANCE_REJECTED_V1)[0]
    assert ev.payload["reason"] == "scope too broad"
    assert ev.payload["released_amount"] == 100


def test_rejected_owner_may_request_again(requested) -> None:
    requested.reject_insurance(INSURANCE_AUDITOR, OWNER, "no")
    request(requested, amount=250)
    assert requested.get_available_liquidity(USDC) == 750


def test_approved_record_cannot_be_rejected(requested) -> None:
    approve(requested)
    with pytest.raises(AlreadyApprovedError):
        requested.reject_insurance(INSURANCE_AUDITOR, OWNER, "late")
    assert requested.get_available_liquidity(USDC) == 900


def test_reject_requires_insurance_auditor(requested) -> None:
    with pytest.raises(MissingRoleError):
        requested.reject_insurance(OWNER, OWNER, "self")


def test_decisions_are_audited(requested) -> None:
    approve(requested)
    rows = requested.audit.query(action_type="INSURANCE_APPROVED")
    assert rows[0]["actor"] == INSURANCE_AUDITOR
