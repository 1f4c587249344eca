"""ledger.core.permissions

Role-based access control.

Role matrix:
| Role               | Add liquidity | Approve/reject insurance | Approve/reject cover | Grant roles | Remove liquidity |
|--------------------|---------------|--------------------------|----------------------|-------------|------------------|
| default_admin      | no            | no                       | no                   | yes         | yes              |
| liquidity_provider | yes           | no                       | no                   | no          | no               |
| insurance_auditor  | no            | yes                      | no                   | no          | no               |
| cover_auditor      | no            | no                       | yes                  | no          | no               |

Exactly one account holds ``default_admin``. It never changes hands directly:
the transfer is scheduled, waits out a delay, and is accepted by the new admin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Protocol, runtime_checkable

from ledger import ZERO_ADDRESS
from ledger.core.database import Database
from ledger.core.events import AdminTransferPayload, EventType, RoleChangedPayload
from ledger.core.exceptions import AdminTransferError, ConfigError, InvalidAddressError, NotDefaultAdminError
from ledger.core.time import Clock, dt_to_iso, ensure_utc, iso_to_dt, utc_now
from ledger.core.types import normalize_address
from ledger.security.audit import AuditLogger

logger = logging.getLogger(__name__)

MIN_ADMIN_TRANSFER_DELAY = timedelta(days=1)


class Role(StrEnum):
    DEFAULT_ADMIN = "default_admin"
    LIQUIDITY_PROVIDER = "liquidity_provider"
    INSURANCE_AUDITOR = "insurance_auditor"
    COVER_AUDITOR = "cover_auditor"


@dataclass(frozen=True, slots=True)
class PermissionCheckResult:
    allowed: bool
    reason: str = ""


@dataclass(frozen=True, slots=True)
class PendingAdminTransfer:
    new_admin: str
    accept_after: datetime
    scheduled_at: datetime


@runtime_checkable
class RoleChecker(Protocol):
    """What the workflow needs from a role directory."""

    def has_role(self, role: Role, account: str) -> bool: ...

    def default_admin(self) -> str | None: ...


class RoleDirectory:
    """Role membership persisted in the ledger database."""

    def __init__(
        self,
        db: Database,
        *,
        admin_transfer_delay: timedelta = timedelta(days=3),
        clock: Clock = utc_now,
    ) -> None:
        if admin_transfer_delay < MIN_ADMIN_TRANSFER_DELAY:
            raise ConfigError(
                f"admin_transfer_delay must be at least {MIN_ADMIN_TRANSFER_DELAY}, got {admin_transfer_delay}"
            )
        self.db = db
        self.admin_transfer_delay = admin_transfer_delay
        self.clock = clock
        self.audit = AuditLogger(db, component="access")

    # -----------------
    # Reads
    # -----------------

    def has_role(self, role: Role, account: str) -> bool:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT 1 FROM role_members WHERE role = ? AND account = ?",
                (str(Role(role)), str(account).lower()),
            ).fetchone()
        return row is not None

    def check_role(self, role: str, account: str) -> PermissionCheckResult:
        try:
            r = Role(role)
        except ValueError:
            return PermissionCheckResult(allowed=False, reason=f"Unknown role: {role}")

        if self.has_role(r, account):
            return PermissionCheckResult(allowed=True)
        return PermissionCheckResult(allowed=False, reason=f"Account '{account}' lacks role '{role}'")

    def members(self, role: Role) -> list[str]:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT account FROM role_members WHERE role = ? ORDER BY granted_at ASC, account ASC",
                (str(Role(role)),),
            ).fetchall()
        return [str(r[0]) for r in rows]

    def default_admin(self) -> str | None:
        admins = self.members(Role.DEFAULT_ADMIN)
        return admins[0] if admins else None

    def pending_default_admin(self) -> PendingAdminTransfer | None:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT new_admin, accept_after, scheduled_at FROM admin_transfers WHERE id = 1"
            ).fetchone()
        if row is None:
            return None
        return PendingAdminTransfer(
            new_admin=str(row[0]),
            accept_after=iso_to_dt(str(row[1])),
            scheduled_at=iso_to_dt(str(row[2])),
        )

    # -----------------
    # Writes
    # -----------------

    def bootstrap(self, admin: str) -> str:
        """Install the first default admin. No-op if one already exists."""

        account = normalize_address(admin)
        if account == ZERO_ADDRESS:
            raise InvalidAddressError(admin)

        with self.db.transaction():
            current = self.default_admin()
            if current is not None:
                return current
            self._insert_member(Role.DEFAULT_ADMIN, account, granted_by=None)
            self.db.append_event(
                event_type=EventType.ROLE_GRANTED_V1,
                payload=RoleChangedPayload(role=str(Role.DEFAULT_ADMIN), account=account, sender=account),
                subject=account,
                actor=account,
                ts=self._now(),
            )
            self.audit.log_action("ROLE_BOOTSTRAP", actor=account, details={"role": str(Role.DEFAULT_ADMIN)})
        logger.info("default_admin_bootstrapped", extra={"account": account})
        return account

    def grant_role(self, caller: str, role: Role, account: str) -> bool:
        """Returns False when the account already held the role."""

        sender = self._require_default_admin(caller)
        r = self._assignable(role)
        target = normalize_address(account)

        with self.db.transaction():
            if self.has_role(r, target):
                return False
            self._insert_member(r, target, granted_by=sender)
            self.db.append_event(
                event_type=EventType.ROLE_GRANTED_V1,
                payload=RoleChangedPayload(role=str(r), account=target, sender=sender),
                subject=target,
                actor=sender,
                ts=self._now(),
            )
            self.audit.log_action("ROLE_GRANTED", actor=sender, details={"role": str(r), "account": target})
        logger.info("role_granted", extra={"role": str(r), "account": target, "sender": sender})
        return True

    def revoke_role(self, caller: str, role: Role, account: str) -> bool:
        """Returns False when the account did not hold the role."""

        sender = self._require_default_admin(caller)
        r = self._assignable(role)
        target = normalize_address(account)
        return self._remove_member(r, target, sender=sender, action="ROLE_REVOKED")

    def renounce_role(self, caller: str, role: Role) -> bool:
        account = normalize_address(caller)
        r = self._assignable(role)
        return self._remove_member(r, account, sender=account, action="ROLE_RENOUNCED")

    def begin_default_admin_transfer(self, caller: str, new_admin: str) -> PendingAdminTransfer:
        sender = self._require_default_admin(caller)
        target = normalize_address(new_admin)
        if target == ZERO_ADDRESS:
            raise InvalidAddressError(new_admin)

        now = self._now()
        pending = PendingAdminTransfer(
            new_admin=target,
            accept_after=now + self.admin_transfer_delay,
            scheduled_at=now,
        )
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO admin_transfers (id, new_admin, accept_after, scheduled_at)
                VALUES (1, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  new_admin = excluded.new_admin,
                  accept_after = excluded.accept_after,
                  scheduled_at = excluded.scheduled_at
                """,
                (target, dt_to_iso(pending.accept_after), dt_to_iso(now)),
            )
            self.db.append_event(
                event_type=EventType.ADMIN_TRANSFER_STARTED_V1,
                payload=AdminTransferPayload(current_admin=sender, new_admin=target, accept_after=pending.accept_after),
                subject=target,
                actor=sender,
                ts=now,
            )
            self.audit.log_action(
                "ADMIN_TRANSFER_STARTED",
                actor=sender,
                details={"new_admin": target, "accept_after": dt_to_iso(pending.accept_after)},
            )
        return pending

    def cancel_default_admin_transfer(self, caller: str) -> None:
        sender = self._require_default_admin(caller)
        pending = self.pending_default_admin()
        if pending is None:
            raise AdminTransferError("No default admin transfer is pending")

        with self.db.transaction() as conn:
            conn.execute("DELETE FROM admin_transfers WHERE id = 1")
            self.db.append_event(
                event_type=EventType.ADMIN_TRANSFER_CANCELED_V1,
                payload=AdminTransferPayload(current_admin=sender, new_admin=pending.new_admin),
                subject=pending.new_admin,
                actor=sender,
                ts=self._now(),
            )
            self.audit.log_action("ADMIN_TRANSFER_CANCELED", actor=sender, details={"new_admin": pending.new_admin})

    def accept_default_admin_transfer(self, caller: str) -> str:
        account = normalize_address(caller)
        now = self._now()

        with self.db.transaction() as conn:
            pending = self.pending_default_admin()
            if pending is None or pending.new_admin != account:
                raise AdminTransferError(f"No default admin transfer pending for {account}")
            if now < pending.accept_after:
                raise AdminTransferError(
                    f"Default admin transfer to {account} is not acceptable before {dt_to_iso(pending.accept_after)}"
                )

            previous = self.default_admin() or ZERO_ADDRESS
            conn.execute("DELETE FROM role_members WHERE role = ?", (str(Role.DEFAULT_ADMIN),))
            self._insert_member(Role.DEFAULT_ADMIN, account, granted_by=previous)
            conn.execute("DELETE FROM admin_transfers WHERE id = 1")
            self.db.append_event(
                event_type=EventType.ADMIN_TRANSFERRED_V1,
                payload=AdminTransferPayload(current_admin=previous, new_admin=account),
                subject=account,
                actor=account,
                ts=now,
            )
            self.audit.log_action("ADMIN_TRANSFERRED", actor=account, details={"previous_admin": previous})

        logger.info("default_admin_transferred", extra={"previous": previous, "account": account})
        return account

    # -----------------
    # Internals
    # -----------------

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    def _require_default_admin(self, caller: str) -> str:
        account = normalize_address(caller)
        if not self.has_role(Role.DEFAULT_ADMIN, account):
            raise NotDefaultAdminError(account)
        return account

    @staticmethod
    def _assignable(role: Role | str) -> Role:
        r = Role(role)
        if r is Role.DEFAULT_ADMIN:
            raise AdminTransferError("default_admin changes hands only through the delayed transfer")
        return r

    def _insert_member(self, role: Role, account: str, *, granted_by: str | None) -> None:
        self.db.conn.execute(
            "INSERT INTO role_members (role, account, granted_by, granted_at) VALUES (?, ?, ?, ?)",
            (str(role), account, granted_by, dt_to_iso(self._now())),
        )

    def _remove_member(self, role: Role, account: str, *, sender: str, action: str) -> bool:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM role_members WHERE role = ? AND account = ?", (str(role), account))
            if cur.rowcount == 0:
                return False
            self.db.append_event(
                event_type=EventType.ROLE_REVOKED_V1,
                payload=RoleChangedPayload(role=str(role), account=account, sender=sender),
                subject=account,
                actor=sender,
                ts=self._now(),
            )
            self.audit.log_action(action, actor=sender, details={"role": str(role), "account": account})
        logger.info("role_revoked", extra={"role": str(role), "account": account, "sender": sender})
        return True
