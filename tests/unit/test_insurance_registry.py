from __future__ import annotations

from datetime import UTC, datetime

from ledger.core.types import EMPTY_INSURANCE, Insurance, InsuranceStatus, InsuranceToken
from ledger.insurance.registry import InsuranceRegistry
from tests.unit._ledger_helpers import CONTRACT_A, CONTRACT_B, OTHER_OWNER, OWNER, USDC, addr

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def _record(scope: tuple[str, ...], chain_ids: tuple[int, ...], amount: int = 10) -> Insurance:
    return Insurance(
        scope=scope,
        chain_ids=chain_ids,
        token=InsuranceToken(insurance_amount=amount, token_address=USDC),
        status=InsuranceStatus.REQUESTED,
        admin=OWNER,
        contact_information="ops@example.org",
        created_at=T0,
        updated_at=T0,
    )


def test_missing_owner_reads_as_empty_record(db) -> None:
    got = InsuranceRegistry(db).get(OWNER)
    assert got == EMPTY_INSURANCE
    assert not got.exists


def test_scope_and_chain_ids_keep_their_order(db) -> None:
    reg = InsuranceRegistry(db)
    scope = tuple(addr(0x100 + i) for i in (5, 1, 9, 3))
    reg.put(OWNER, _record(scope, (10, 1, 137, 56)))

    got = reg.get(OWNER)
    assert got.scope == scope
    assert got.chain_ids == (10, 1, 137, 56)
    assert got.created_at == T0


def test_second_put_replaces_first(db) -> None:
    reg = InsuranceRegistry(db)
    reg.put(OWNER, _record((CONTRACT_A, CONTRACT_B), (1, 2)))
    reg.put(OWNER, _record((CONTRACT_B,), (2,), amount=7))

    got = reg.get(OWNER)
    assert got.scope == (CONTRACT_B,)
    assert got.token.insurance_amount == 7
    assert len(reg.list_all()) == 1


def test_find_by_contract_and_reserved_total(db) -> None:
    reg = InsuranceRegistry(db)
    reg.put(OWNER, _record((CONTRACT_A, CONTRACT_B), (1, 1), amount=10))
    reg.put(OTHER_OWNER, _record((CONTRACT_B,), (1,), amount=5))

    assert [o for o, _ in reg.find_by_contract(CONTRACT_A)] == [OWNER]
    assert {o for o, _ in reg.find_by_contract(CONTRACT_B)} == {OWNER, OTHER_OWNER}
    assert reg.reserved_total(USDC) == 15


def test_delete_drops_record_and_scope(db) -> None:
    reg = InsuranceRegistry(db)
    reg.put(OWNER, _record((CONTRACT_A,), (1,)))

    assert reg.delete(OWNER) is True
    assert reg.delete(OWNER) is False
    assert not reg.get(OWNER).exists
    assert reg.find_by_contract(CONTRACT_A) == []
