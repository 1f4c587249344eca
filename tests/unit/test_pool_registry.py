from __future__ import annotations

import pytest

from ledger import UINT256_MAX
from ledger.core.exceptions import ArithmeticOverflowError, ArithmeticUnderflowError
from ledger.pool.registry import LiquidityPoolRegistry
from tests.unit._ledger_helpers import DAI, USDC


def test_unseen_asset_reports_zero(db) -> None:
    assert LiquidityPoolRegistry(db).available(USDC) == 0


def test_credit_and_debit_are_checked(db) -> None:
    pools = LiquidityPoolRegistry(db)
    assert pools.credit(USDC, 10) == 10
    assert pools.debit(USDC, 4) == 6

    with pytest.raises(ArithmeticUnderflowError):
        pools.debit(USDC, 7)
    assert pools.available(USDC) == 6

    pools.credit(DAI, UINT256_MAX)
    with pytest.raises(ArithmeticOverflowError):
        pools.credit(DAI, 1)
    assert pools.available(DAI) == UINT256_MAX


def test_fees_are_kept_apart(db) -> None:
    pools = LiquidityPoolRegistry(db)
    pools.credit(USDC, 10)
    pools.credit_fees(USDC, 3)
    assert pools.available(USDC) == 10
    assert pools.fees_collected(USDC) == 3
    assert pools.list_pools() == {USDC: 10}
