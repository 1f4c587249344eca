from __future__ import annotations

import pytest

from ledger import ZERO_ADDRESS
from ledger.core.events import EventType
from ledger.core.exceptions import (
    AmountGreaterThanAvailableError,
    InsufficientAllowanceError,
    InvalidAddressError,
    MissingRoleError,
    NotDefaultAdminError,
    ZeroAmountError,
)
from tests.unit._ledger_helpers import ADMIN, DAI, PROVIDER, STRANGER, USDC, fund, request, seed_liquidity


def test_add_liquidity_moves_funds_into_custody(workflow, custody, db) -> None:
    assert seed_liquidity(workflow, custody, USDC, 1000) == 1000
    assert workflow.get_available_liquidity(USDC) == 1000
    assert custody.custody_balance(USDC) == 1000
    assert custody.balance_of(USDC, PROVIDER) == 0

    ev = db.get_events(event_type=EventType.LIQUIDITY_ADDED_V1)[0]
    assert ev.payload == {"asset": USDC, "amount": 1000, "provider": PROVIDER}


def test_add_liquidity_increases_by_exactly_the_amount(workflow, custody) -> None:
    seed_liquidity(workflow, custody, USDC, 7)
    fund(custody, USDC, PROVIDER, 5)
    assert workflow.add_liquidity(PROVIDER, USDC, 5) == 12


def test_add_liquidity_requires_provider_role(workflow, custody) -> None:
    fund(custody, USDC, STRANGER, 10)
    with pytest.raises(MissingRoleError) as ei:
        workflow.add_liquidity(STRANGER, USDC, 10)
    assert ei.value.role == "liquidity_provider"
    assert workflow.get_available_liquidity(USDC) == 0


def test_add_liquidity_of_zero_commits(workflow, db) -> None:
    assert workflow.add_liquidity(PROVIDER, USDC, 0) == 0
    assert workflow.get_available_liquidity(USDC) == 0

    ev = db.get_events(event_type=EventType.LIQUIDITY_ADDED_V1)[0]
    assert ev.payload == {"asset": USDC, "amount": 0, "provider": PROVIDER}


def test_add_liquidity_rejects_sentinel_asset(workflow) -> None:
    with pytest.raises(InvalidAddressError):
        workflow.add_liquidity(PROVIDER, ZERO_ADDRESS, 10)


def test_remove_liquidity_rejects_zero(workflow, custody) -> None:
    seed_liquidity(workflow, custody, USDC, 10)
    with pytest.raises(ZeroAmountError):
        workflow.remove_liquidity(ADMIN, USDC, 0)
    assert workflow.get_available_liquidity(USDC) == 10


def test_failed_pull_leaves_counter_untouched(workflow, custody, db) -> None:
    custody.mint(USDC, PROVIDER, 10)

    with pytest.raises(InsufficientAllowanceError):
        workflow.add_liquidity(PROVIDER, USDC, 10)

    assert workflow.get_available_liquidity(USDC) == 0
    assert workflow.list_pools() == {}
    assert db.get_events(event_type=EventType.LIQUIDITY_ADDED_V1) == []


def test_unseen_asset_reads_zero(workflow) -> None:
    assert workflow.get_available_liquidity(DAI) == 0
    assert workflow.get_available_liquidity(ZERO_ADDRESS) == 0


def test_remove_liquidity_is_default_admin_only(workflow, custody) -> None:
    seed_liquidity(workflow, custody, USDC, 100)

    with pytest.raises(NotDefaultAdminError):
        workflow.remove_liquidity(PROVIDER, USDC, 10)

    assert workflow.remove_liquidity(ADMIN, USDC, 40) == 60
    assert custody.balance_of(USDC, ADMIN) == 40
    assert custody.custody_balance(USDC) == 60


def test_remove_cannot_touch_reserved_liquidity(workflow, custody) -> None:
    seed_liquidity(workflow, custody, USDC, 1000)
    request(workflow, amount=600)

    with pytest.raises(AmountGreaterThanAvailableError) as ei:
        workflow.remove_liquidity(ADMIN, USDC, 500)
    assert (ei.value.requested, ei.value.available) == (500, 400)
    assert workflow.get_available_liquidity(USDC) == 400
    assert custody.custody_balance(USDC) == 1000


def test_remove_liquidity_is_audited(workflow, custody) -> None:
    seed_liquidity(workflow, custody, USDC, 10)
    workflow.remove_liquidity(ADMIN, USDC, 10)
    rows = workflow.audit.query(action_type="LIQUIDITY_REMOVED")
    assert rows[0]["actor"] == ADMIN
    assert rows[0]["details"] == {"asset": USDC, "amount": "10"}


def test_pools_are_listed_per_asset(workflow, custody) -> None:
    seed_liquidity(workflow, custody, USDC, 3)
    seed_liquidity(workflow, custody, DAI, 4)
    assert workflow.list_pools() == {USDC: 3, DAI: 4}
