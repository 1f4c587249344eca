"""ledger.insurance.workflow

Insurance workflow engine.

The only writer of the liquidity pools and the insurance registry. Every public
operation:

1. resolves the acting principal and checks its role, at the top,
2. validates in a fixed order (first failing check wins),
3. mutates the pool counter, the record, and custody inside one transaction,
4. journals one event for the transition,
5. after commit, hands the events to the notification sink.

A raised error means nothing happened.

Conservation, per asset:

    available + sum(reserved by live records) == added - removed - unlocked
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel

from ledger import UINT256_MAX, ZERO_ADDRESS
from ledger.core.config import Config, LedgerConfig
from ledger.core.database import Database
from ledger.core.events import (
    CoverPayload,
    EventType,
    FundsUnlockedPayload,
    InsuranceAdminChangedPayload,
    InsuranceAmountChangedPayload,
    InsuranceApprovedPayload,
    InsuranceDeletedPayload,
    InsuranceFeePaidPayload,
    InsuranceRejectedPayload,
    InsuranceRequestedPayload,
    InsuranceTokenPayload,
    LiquidityAddedPayload,
    LiquidityRemovedPayload,
)
from ledger.core.exceptions import (
    AlreadyApprovedError,
    AlreadyRequestedError,
    AmountGreaterThanAvailableError,
    EmptyContactInformationError,
    EmptyScopeError,
    InvalidAddressError,
    InvalidChainIdError,
    InvalidInsuranceStateError,
    InvalidScoreError,
    MissingRoleError,
    NotDefaultAdminError,
    NotInsuranceAdminError,
    NotRequestedError,
    ScopeChainIdSizeMismatchError,
    ScopeScoreSizeMismatchError,
    ZeroAmountError,
    ZeroInsuranceAmountError,
)
from ledger.core.models import Event
from ledger.core.notifications import NotificationSink
from ledger.core.permissions import Role, RoleChecker, RoleDirectory
from ledger.core.time import Clock, ensure_utc, utc_now
from ledger.core.types import (
    Insurance,
    InsurancePayment,
    InsuranceStatus,
    InsuranceToken,
    checked_add,
    normalize_address,
    normalize_asset,
    require_uint,
)
from ledger.custody.base import AssetCustody
from ledger.custody.token_ledger import TokenLedger
from ledger.insurance.pricing import FlatRatePremium, PremiumModel
from ledger.insurance.registry import InsuranceRegistry
from ledger.insurance.state import ACTIVE_STATES, InsuranceStateMachine, effective_status
from ledger.pool.registry import LiquidityPoolRegistry
from ledger.security.audit import AuditLogger

logger = logging.getLogger(__name__)

S = InsuranceStatus


@dataclass(slots=True)
class _Operation:
    name: str
    now: datetime
    events: list[Event] = field(default_factory=list)


class InsuranceWorkflow:
    """The ledger object: both registries, the state machine, and every transition."""

    def __init__(
        self,
        db: Database,
        *,
        roles: RoleChecker,
        custody: AssetCustody,
        config: LedgerConfig | None = None,
        premium_model: PremiumModel | None = None,
        sink: NotificationSink | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.db = db
        self.roles = roles
        self.custody = custody
        self.cfg = config or LedgerConfig()
        self.premium = premium_model or FlatRatePremium()
        self.sink = sink or NotificationSink()
        self.clock = clock
        self.pools = LiquidityPoolRegistry(db)
        self.insurances = InsuranceRegistry(db)
        self.sm = InsuranceStateMachine()
        self.audit = AuditLogger(db, component="workflow")

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        db: Database | None = None,
        clock: Clock = utc_now,
    ) -> InsuranceWorkflow:
        """Wire the paper custody, the persisted role directory, and the flat-rate premium."""

        database = db or Database(config.db_path)
        roles = RoleDirectory(database, admin_transfer_delay=config.access.admin_transfer_delay, clock=clock)
        if config.access.default_admin:
            roles.bootstrap(config.access.default_admin)
        return cls(
            database,
            roles=roles,
            custody=TokenLedger(database, custody_address=config.ledger.custody_address),
            config=config.ledger,
            premium_model=FlatRatePremium.from_config(config.premium),
            clock=clock,
        )

    # -----------------
    # Reads
    # -----------------

    def get_available_liquidity(self, asset: str) -> int:
        return self.pools.available(normalize_address(asset))

    def reserved_liquidity(self, asset: str) -> int:
        return self.insurances.reserved_total(normalize_address(asset))

    def fees_collected(self, asset: str) -> int:
        return self.pools.fees_collected(normalize_address(asset))

    def list_pools(self) -> dict[str, int]:
        return self.pools.list_pools()

    def insurance_of(self, owner: str) -> Insurance:
        """Zero-value record when none exists; check ``.exists``."""

        return self.insurances.get(normalize_address(owner))

    def get_insurance(self, contract_address: str) -> list[tuple[str, Insurance]]:
        """Records covering ``contract_address``, as ``(owner, insurance)`` pairs."""

        return self.insurances.find_by_contract(normalize_address(contract_address))

    def status_of(self, owner: str, *, now: datetime | None = None) -> InsuranceStatus:
        at = ensure_utc(now or self.clock())
        return effective_status(self.insurance_of(owner), now=at, payment_window=self.cfg.payment_window)

    # -----------------
    # Liquidity
    # -----------------

    def add_liquidity(self, caller: str, asset: str, amount: int) -> int:
        """Returns the new available amount."""

        provider = normalize_address(caller)
        self._require_role(Role.LIQUIDITY_PROVIDER, provider)
        token = normalize_asset(asset)
        amt = require_uint(amount, name="amount")

        with self._operation("add_liquidity") as op:
            # Counter first, then the pull. A failed pull rolls both back.
            available = self.pools.credit(token, amt)
            self.custody.transfer_into(token, provider, amt)
            self._emit(
                op,
                EventType.LIQUIDITY_ADDED_V1,
                LiquidityAddedPayload(asset=token, amount=amt, provider=provider),
                subject=token,
                actor=provider,
            )

        logger.info("liquidity_added", extra={"asset": token, "amount": str(amt), "provider": provider})
        return available

    def remove_liquidity(self, caller: str, asset: str, amount: int) -> int:
        """Default admin only. Returns the new available amount."""

        admin = self._require_default_admin(caller)
        token = normalize_asset(asset)
        amt = require_uint(amount, name="amount")
        if amt == 0:
            raise ZeroAmountError(token)

        with self._operation("remove_liquidity") as op:
            available = self.pools.available(token)
            if amt > available:
                raise AmountGreaterThanAvailableError(amt, available, token)
            remaining = self.pools.debit(token, amt)
            self.custody.transfer_out(token, admin, amt)
            self._emit(
                op,
                EventType.LIQUIDITY_REMOVED_V1,
                LiquidityRemovedPayload(asset=token, amount=amt, to=admin),
                subject=token,
                actor=admin,
            )
            self.audit.log_action("LIQUIDITY_REMOVED", actor=admin, details={"asset": token, "amount": str(amt)})

        logger.info("liquidity_removed", extra={"asset": token, "amount": str(amt), "to": admin})
        return remaining

    # -----------------
    # Request / approval
    # -----------------

    def request_insurance(
        self,
        caller: str,
        *,
        protocol_name: str,
        protocol_website: str,
        contact_information: str,
        insurance_token: InsuranceToken,
        scope: Sequence[str],
        chain_ids: Sequence[int],
    ) -> Insurance:
        owner = normalize_address(caller)

        with self._operation("request_insurance") as op:
            if self.insurances.get(owner).exists:
                raise AlreadyRequestedError(owner)

            asset = normalize_address(insurance_token.token_address)
            amount = require_uint(insurance_token.insurance_amount, name="insurance_amount")
            contracts = tuple(normalize_address(c) for c in scope)
            chains = self._validate_chain_ids(chain_ids)

            if not contracts:
                raise EmptyScopeError()
            if not contact_information:
                raise EmptyContactInformationError()
            if amount == 0:
                raise ZeroInsuranceAmountError(asset)
            if len(contracts) != len(chains):
                raise ScopeChainIdSizeMismatchError(len(contracts), len(chains))
            available = self.pools.available(asset)
            if amount > available:
                raise AmountGreaterThanAvailableError(amount, available, asset)

            self.sm.transition(owner=owner, state=S.NONE, new_state=S.REQUESTED, operation=op.name)
            self.pools.debit(asset, amount)
            insurance = Insurance(
                scope=contracts,
                scss=(),
                chain_ids=chains,
                token=InsuranceToken(insurance_amount=amount, token_address=asset),
                payment=InsurancePayment(),
                status=S.REQUESTED,
                admin=owner,
                protocol_name=str(protocol_name),
                protocol_website=str(protocol_website),
                contact_information=str(contact_information),
                created_at=op.now,
                updated_at=op.now,
            )
            self.insurances.put(owner, insurance)
            self._emit(
                op,
                EventType.INSURANCE_REQUESTED_V1,
                InsuranceRequestedPayload(
                    owner=owner,
                    protocol_name=insurance.protocol_name,
                    protocol_website=insurance.protocol_website,
                    contact_information=insurance.contact_information,
                    scope=list(contracts),
                    chain_ids=list(chains),
                    insurance_token=InsuranceTokenPayload(insurance_amount=amount, token_address=asset),
                ),
                subject=owner,
                actor=owner,
            )

        logger.info("insurance_requested", extra={"owner": owner, "asset": asset, "amount": str(amount)})
        return insurance

    def approve_insurance(self, caller: str, contract_address: str, scss: Sequence[int]) -> Insurance:
        """``contract_address`` is the owner the record is keyed by."""

        auditor = normalize_address(caller)
        self._require_role(Role.INSURANCE_AUDITOR, auditor)
        owner = normalize_address(contract_address)

        with self._operation("approve_insurance") as op:
            insurance = self._load(owner)
            if insurance.status is not S.REQUESTED:
                raise AlreadyApprovedError(owner)
            scores = self._validate_scores(insurance, scss)

            self.sm.transition(owner=owner, state=S.REQUESTED, new_state=S.APPROVED, operation=op.name)
            scored = dataclasses.replace(insurance, scss=scores)
            payment = InsurancePayment(
                insurance_price=require_uint(self.premium.price(scored), name="insurance_price"),
                payment_deadline=op.now + self.cfg.payment_period,
            )
            approved = dataclasses.replace(scored, payment=payment, status=S.APPROVED, updated_at=op.now)
            self.insurances.put(owner, approved)
            self._emit(
                op,
                EventType.INSURANCE_APPROVED_V1,
                InsuranceApprovedPayload(
                    owner=owner,
                    scss=list(scores),
                    insurance_price=payment.insurance_price,
                    payment_deadline=payment.payment_deadline,
                ),
                subject=owner,
                actor=auditor,
            )
            self.audit.log_action("INSURANCE_APPROVED", actor=auditor, details={"owner": owner})

        logger.info("insurance_approved", extra={"owner": owner, "auditor": auditor})
        return approved

    def reject_insurance(self, caller: str, contract_address: str, reason: str) -> int:
        """Returns the amount released back to the pool."""

        auditor = normalize_address(caller)
        self._require_role(Role.INSURANCE_AUDITOR, auditor)
        owner = normalize_address(contract_address)

        with self._operation("reject_insurance") as op:
            insurance = self._load(owner)
            if insurance.status is not S.REQUESTED:
                raise AlreadyApprovedError(owner)

            self.sm.transition(owner=owner, state=S.REQUESTED, new_state=S.REJECTED, operation=op.name)
            released = self._release(owner, insurance)
            self._emit(
                op,
                EventType.INSURANCE_REJECTED_V1,
                InsuranceRejectedPayload(
                    owner=owner,
                    reason=str(reason),
                    released_amount=released,
                    token_address=insurance.token.token_address,
                ),
                subject=owner,
                actor=auditor,
            )
            self.audit.log_action("INSURANCE_REJECTED", actor=auditor, details={"owner": owner, "reason": reason})

        logger.info("insurance_rejected", extra={"owner": owner, "auditor": auditor, "released": str(released)})
        return released

    # -----------------
    # Cover claims
    # -----------------

    def request_cover(self, caller: str, contract_address: str, reason: str = "") -> Insurance:
        admin = normalize_address(caller)
        owner = normalize_address(contract_address)

        with self._operation("request_cover") as op:
            insurance = self._load(owner)
            self._require_insurance_admin(insurance, admin, owner)
            status = self._status(insurance, op)
            self.sm.transition(owner=owner, state=status, new_state=S.COVER_REQUESTED, operation=op.name)
            updated = self._store_status(owner, insurance, S.COVER_REQUESTED, op)
            self._emit(
                op,
                EventType.COVER_REQUESTED_V1,
                CoverPayload(owner=owner, actor=admin, reason=str(reason)),
                subject=owner,
                actor=admin,
            )

        logger.info("cover_requested", extra={"owner": owner})
        return updated

    def approve_cover(self, caller: str, contract_address: str) -> Insurance:
        auditor = normalize_address(caller)
        self._require_role(Role.COVER_AUDITOR, auditor)
        owner = normalize_address(contract_address)

        with self._operation("approve_cover") as op:
            insurance = self._load(owner)
            self.sm.transition(owner=owner, state=insurance.status, new_state=S.COVER_APPROVED, operation=op.name)
            updated = self._store_status(owner, insurance, S.COVER_APPROVED, op)
            self._emit(
                op,
                EventType.COVER_APPROVED_V1,
                CoverPayload(owner=owner, actor=auditor),
                subject=owner,
                actor=auditor,
            )
            self.audit.log_action("COVER_APPROVED", actor=auditor, details={"owner": owner})

        logger.info("cover_approved", extra={"owner": owner, "auditor": auditor})
        return updated

    def reject_cover(self, caller: str, contract_address: str, reason: str = "") -> Insurance:
        auditor = normalize_address(caller)
        self._require_role(Role.COVER_AUDITOR, auditor)
        owner = normalize_address(contract_address)

        with self._operation("reject_cover") as op:
            insurance = self._load(owner)
            self.sm.transition(owner=owner, state=insurance.status, new_state=S.COVER_REJECTED, operation=op.name)
            updated = self._store_status(owner, insurance, S.COVER_REJECTED, op)
            self._emit(
                op,
                EventType.COVER_REJECTED_V1,
                CoverPayload(owner=owner, actor=auditor, reason=str(reason)),
                subject=owner,
                actor=auditor,
            )
            self.audit.log_action("COVER_REJECTED", actor=auditor, details={"owner": owner, "reason": reason})

        logger.info("cover_rejected", extra={"owner": owner, "auditor": auditor})
        return updated

    def accept_cover_rejection(self, caller: str, contract_address: str) -> Insurance:
        admin = normalize_address(caller)
        owner = normalize_address(contract_address)

        with self._operation("accept_cover_rejection") as op:
            insurance = self._load(owner)
            self._require_insurance_admin(insurance, admin, owner)
            self.sm.transition(owner=owner, state=insurance.status, new_state=S.APPROVED, operation=op.name)
            updated = self._store_status(owner, insurance, S.APPROVED, op)
            self._emit(
                op,
                EventType.COVER_REJECTION_ACCEPTED_V1,
                CoverPayload(owner=owner, actor=admin),
                subject=owner,
                actor=admin,
            )

        return updated

    def unlock_funds(self, caller: str, contract_address: str) -> int:
        """Pay the reserved amount out to the record admin. Returns the amount paid."""

        admin = normalize_address(caller)
        owner = normalize_address(contract_address)

        with self._operation("unlock_funds") as op:
            insurance = self._load(owner)
            self._require_insurance_admin(insurance, admin, owner)
            self.sm.transition(owner=owner, state=insurance.status, new_state=S.FUNDS_UNLOCKED, operation=op.name)

            asset = insurance.token.token_address
            amount = insurance.token.insurance_amount
            # The reservation is realized as a payout; the pool is not credited.
            self.insurances.delete(owner)
            self.custody.transfer_out(asset, insurance.admin, amount)
            self._emit(
                op,
                EventType.FUNDS_UNLOCKED_V1,
                FundsUnlockedPayload(owner=owner, to=insurance.admin, token_address=asset, amount=amount),
                subject=owner,
                actor=admin,
            )

        logger.info("funds_unlocked", extra={"owner": owner, "asset": asset, "amount": str(amount)})
        return amount

    # -----------------
    # Maintenance
    # -----------------

    def delete_insurance(self, caller: str, contract_address: str) -> int:
        """Record admin any time; anyone once coverage has lapsed. Returns the amount released."""

        actor = normalize_address(caller)
        owner = normalize_address(contract_address)

        with self._operation("delete_insurance") as op:
            insurance = self._load(owner)
            status = self._status(insurance, op)
            lapsed = status is S.EXPIRED
            if not lapsed:
                self._require_insurance_admin(insurance, actor, owner)

            self.sm.transition(owner=owner, state=status, new_state=S.DELETED, operation=op.name)
            released = self._release(owner, insurance)
            self._emit(
                op,
                EventType.INSURANCE_DELETED_V1,
                InsuranceDeletedPayload(
                    owner=owner,
                    deleted_by=actor,
                    lapsed=lapsed,
                    released_amount=released,
                    token_address=insurance.token.token_address,
                ),
                subject=owner,
                actor=actor,
            )

        logger.info("insurance_deleted", extra={"owner": owner, "deleted_by": actor, "lapsed": lapsed})
        return released

    def pay_insurance_fee(self, caller: str, contract_address: str) -> Insurance:
        """Anyone may pay, but only inside the pending-payment window."""

        payer = normalize_address(caller)
        owner = normalize_address(contract_address)

        with self._operation("pay_insurance_fee") as op:
            insurance = self._load(owner)
            status = self._status(insurance, op)
            if status is not S.PENDING_PAYMENT:
                raise InvalidInsuranceStateError(owner, status, op.name)
            self.sm.transition(owner=owner, state=status, new_state=S.APPROVED, operation=op.name)

            asset = insurance.token.token_address
            price = insurance.payment.insurance_price
            if price > 0:
                self.custody.transfer_into(asset, payer, price)
                self.pools.credit_fees(asset, price)

            payment = InsurancePayment(
                insurance_price=price,
                payment_deadline=insurance.payment.payment_deadline + self.cfg.payment_period,
            )
            updated = dataclasses.replace(insurance, payment=payment, updated_at=op.now)
            self.insurances.put(owner, updated)
            self._emit(
                op,
                EventType.INSURANCE_FEE_PAID_V1,
                InsuranceFeePaidPayload(
                    owner=owner,
                    payer=payer,
                    token_address=asset,
                    amount=price,
                    payment_deadline=payment.payment_deadline,
                ),
                subject=owner,
                actor=payer,
            )

        logger.info("insurance_fee_paid", extra={"owner": owner, "payer": payer, "amount": str(price)})
        return updated

    def change_insurance_admin(self, caller: str, contract_address: str, new_admin: str) -> Insurance:
        admin = normalize_address(caller)
        owner = normalize_address(contract_address)
        successor = normalize_address(new_admin)
        if successor == ZERO_ADDRESS:
            raise InvalidAddressError(new_admin)

        with self._operation("change_insurance_admin") as op:
            insurance = self._load(owner)
            self._require_insurance_admin(insurance, admin, owner)
            updated = dataclasses.replace(insurance, admin=successor, updated_at=op.now)
            self.insurances.put(owner, updated)
            self._emit(
                op,
                EventType.INSURANCE_ADMIN_CHANGED_V1,
                InsuranceAdminChangedPayload(owner=owner, previous_admin=admin, new_admin=successor),
                subject=owner,
                actor=admin,
            )

        return updated

    def change_insurance_amount(self, caller: str, contract_address: str, new_amount: int) -> Insurance:
        admin = normalize_address(caller)
        owner = normalize_address(contract_address)
        amount = require_uint(new_amount, name="new_amount")

        with self._operation("change_insurance_amount") as op:
            insurance = self._load(owner)
            self._require_insurance_admin(insurance, admin, owner)
            status = self._status(insurance, op)
            if status is not S.REQUESTED and status not in ACTIVE_STATES:
                raise InvalidInsuranceStateError(owner, status, op.name)

            asset = insurance.token.token_address
            if amount == 0:
                raise ZeroInsuranceAmountError(asset)
            reserved = insurance.token.insurance_amount
            capacity = checked_add(self.pools.available(asset), reserved)
            if amount > capacity:
                raise AmountGreaterThanAvailableError(amount, capacity, asset)

            if amount > reserved:
                self.pools.debit(asset, amount - reserved)
            elif amount < reserved:
                self.pools.credit(asset, reserved - amount)

            resized = dataclasses.replace(
                insurance,
                token=InsuranceToken(insurance_amount=amount, token_address=asset),
                updated_at=op.now,
            )
            if insurance.payment.payment_deadline is not None:
                price = require_uint(self.premium.price(resized), name="insurance_price")
                resized = dataclasses.replace(
                    resized,
                    payment=InsurancePayment(insurance_price=price, payment_deadline=insurance.payment.payment_deadline),
                )
            self.insurances.put(owner, resized)
            self._emit(
                op,
                EventType.INSURANCE_AMOUNT_CHANGED_V1,
                InsuranceAmountChangedPayload(
                    owner=owner,
                    token_address=asset,
                    previous_amount=reserved,
                    new_amount=amount,
                    insurance_price=resized.payment.insurance_price,
                ),
                subject=owner,
                actor=admin,
            )

        logger.info(
            "insurance_amount_changed",
            extra={"owner": owner, "previous_amount": str(reserved), "new_amount": str(amount)},
        )
        return resized

    # -----------------
    # Internals
    # -----------------

    @contextmanager
    def _operation(self, name: str) -> Iterator[_Operation]:
        op = _Operation(name=name, now=ensure_utc(self.clock()))
        with self.db.transaction():
            yield op
        self.sink.dispatch(op.events)

    def _emit(
        self,
        op: _Operation,
        event_type: EventType,
        payload: BaseModel,
        *,
        subject: str,
        actor: str,
    ) -> Event:
        event = self.db.append_event(event_type=event_type, payload=payload, subject=subject, actor=actor, ts=op.now)
        op.events.append(event)
        return event

    def _require_role(self, role: Role, account: str) -> None:
        if not self.roles.has_role(role, account):
            raise MissingRoleError(account, role)

    def _require_default_admin(self, caller: str) -> str:
        account = normalize_address(caller)
        if self.roles.default_admin() != account:
            raise NotDefaultAdminError(account)
        return account

    @staticmethod
    def _require_insurance_admin(insurance: Insurance, account: str, owner: str) -> None:
        if insurance.admin != account:
            raise NotInsuranceAdminError(account, owner)

    def _load(self, owner: str) -> Insurance:
        insurance = self.insurances.get(owner)
        if not insurance.exists:
            raise NotRequestedError(owner)
        return insurance

    def _status(self, insurance: Insurance, op: _Operation) -> InsuranceStatus:
        return effective_status(insurance, now=op.now, payment_window=self.cfg.payment_window)

    def _store_status(self, owner: str, insurance: Insurance, status: InsuranceStatus, op: _Operation) -> Insurance:
        updated = dataclasses.replace(insurance, status=status, updated_at=op.now)
        self.insurances.put(owner, updated)
        return updated

    def _release(self, owner: str, insurance: Insurance) -> int:
        """Credit the reservation back to the pool and drop the record."""

        amount = insurance.token.insurance_amount
        self.pools.credit(insurance.token.token_address, amount)
        self.insurances.delete(owner)
        return amount

    @staticmethod
    def _validate_chain_ids(chain_ids: Sequence[int]) -> tuple[int, ...]:
        chains = tuple(chain_ids)
        for i, c in enumerate(chains):
            if isinstance(c, bool) or not isinstance(c, int) or not 0 <= c <= UINT256_MAX:
                raise InvalidChainIdError(i, c)
        return chains

    @staticmethod
    def _validate_scores(insurance: Insurance, scss: Sequence[int]) -> tuple[int, ...]:
        scores = tuple(scss)
        if len(scores) != len(insurance.scope):
            raise ScopeScoreSizeMismatchError(len(insurance.scope), len(scores))
        for i, s in enumerate(scores):
            if isinstance(s, bool) or not isinstance(s, int) or not 0 <= s <= 255:
                raise InvalidScoreError(i, s)
        return scores
