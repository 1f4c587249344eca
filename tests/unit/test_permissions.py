"""Role directory and the delayed default admin transfer."""

from __future__ import annotations

from datetime import timedelta

import pytest

from ledger.core.events import EventType
from ledger.core.exceptions import AdminTransferError, ConfigError, InvalidAddressError, NotDefaultAdminError
from ledger.core.permissions import Role, RoleChecker, RoleDirectory
from tests.unit._ledger_helpers import ADMIN, COVER_AUDITOR, PROVIDER, STRANGER


def test_directory_satisfies_role_checker(roles: RoleDirectory) -> None:
    assert isinstance(roles, RoleChecker)


def test_bootstrap_is_idempotent(roles: RoleDirectory) -> None:
    assert roles.default_admin() == ADMIN
    assert roles.bootstrap(STRANGER) == ADMIN
    assert roles.members(Role.DEFAULT_ADMIN) == [ADMIN]


def test_bootstrap_rejects_sentinel(db) -> None:
    with pytest.raises(InvalidAddressError):
        RoleDirectory(db).bootstrap("0x" + "0" * 40)


def test_directory_refuses_an_instant_admin_transfer(db) -> None:
    with pytest.raises(ConfigError):
        RoleDirectory(db, admin_transfer_delay=timedelta(0))
    with pytest.raises(ConfigError):
        RoleDirectory(db, admin_transfer_delay=timedelta(hours=23))


def test_grant_and_revoke(roles: RoleDirectory) -> None:
    assert roles.grant_role(ADMIN, Role.COVER_AUDITOR, STRANGER) is True
    assert roles.grant_role(ADMIN, Role.COVER_AUDITOR, STRANGER) is False
    assert roles.has_role(Role.COVER_AUDITOR, STRANGER)

    assert roles.revoke_role(ADMIN, Role.COVER_AUDITOR, STRANGER) is True
    assert roles.revoke_role(ADMIN, Role.COVER_AUDITOR, STRANGER) is False
    assert not roles.has_role(Role.COVER_AUDITOR, STRANGER)


def test_only_default_admin_grants(roles: RoleDirectory) -> None:
    with pytest.raises(NotDefaultAdminError):
        roles.grant_role(PROVIDER, Role.COVER_AUDITOR, STRANGER)


def test_default_admin_cannot_be_granted_directly(roles: RoleDirectory) -> None:
    with pytest.raises(AdminTransferError):
        roles.grant_role(ADMIN, Role.DEFAULT_ADMIN, STRANGER)


def test_renounce_role(roles: RoleDirectory) -> None:
    assert roles.renounce_role(COVER_AUDITOR, Role.COVER_AUDITOR) is True
    assert not roles.has_role(Role.COVER_AUDITOR, COVER_AUDITOR)


def test_check_role_reports_reason(roles: RoleDirectory) -> None:
    assert roles.check_role("liquidity_provider", PROVIDER).allowed
    denied = roles.check_role("cover_auditor", PROVIDER)
    assert not denied.allowed
    assert "lacks role" in denied.reason
    assert "Unknown role" in roles.check_role("hacker", PROVIDER).reason


def test_grants_are_audited_and_journaled(roles: RoleDirectory, db) -> None:
    rows = roles.audit.query(action_type="ROLE_GRANTED")
    assert {r["details"]["account"] for r in rows} >= {PROVIDER, COVER_AUDITOR}
    assert db.get_events(event_type=EventType.ROLE_GRANTED_V1, subject=PROVIDER)


def test_admin_transfer_waits_out_the_delay(roles: RoleDirectory, clock) -> None:
    pending = roles.begin_default_admin_transfer(ADMIN, STRANGER)
    assert roles.pending_default_admin() == pending

    with pytest.raises(AdminTransferError):
        roles.accept_default_admin_transfer(STRANGER)

    clock.advance(days=3)
    with pytest.raises(AdminTransferError):
        roles.accept_default_admin_transfer(PROVIDER)

    assert roles.accept_default_admin_transfer(STRANGER) == STRANGER
    assert roles.default_admin() == STRANGER
    assert roles.members(Role.DEFAULT_ADMIN) == [STRANGER]
    assert roles.pending_default_admin() is None


def test_admin_transfer_can_be_canceled(roles: RoleDirectory, clock) -> None:
    roles.begin_default_admin_transfer(ADMIN, STRANGER)
    roles.cancel_default_admin_transfer(ADMIN)
    clock.advance(days=10)

    with pytest.raises(AdminTransferError):
        roles.accept_default_admin_transfer(STRANGER)
    with pytest.raises(AdminTransferError):
        roles.cancel_default_admin_transfer(ADMIN)
    assert roles.default_admin() == ADMIN
