"""ledger.core.exceptions

Errors are part of the interface.

Every failure is a precondition violation. Each error carries the values that
violated it, so the caller can correct the request and resubmit.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base exception for the ledger."""

    code = "ledger.error"


class ConfigError(LedgerError):
    """Configuration is missing, invalid, or inconsistent."""

    code = "config.invalid"


class EventStoreError(LedgerError):
    """Event store failures: schema, IO, integrity, or invariants."""

    code = "events.store"


# -----------------
# Input validation
# -----------------


class ValidationError(LedgerError):
    """Request shape is invalid."""

    code = "validation.error"


class InvalidAddressError(ValidationError):
    code = "validation.invalid_address"

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid address: {value!r}")


class InvalidChainIdError(ValidationError):
    code = "validation.invalid_chain_id"

    def __init__(self, index: int, value: object) -> None:
        self.index = int(index)
        self.value = value
        super().__init__(f"Chain id at index {self.index} is not a uint256: {value!r}")


class EmptyScopeError(ValidationError):
    code = "insurance.empty_scope"

    def __init__(self) -> None:
        super().__init__("Insurance scope is empty")


class EmptyContactInformationError(ValidationError):
    code = "insurance.empty_contact_information"

    def __init__(self) -> None:
        super().__init__("Contact information is empty")


class ZeroInsuranceAmountError(ValidationError):
    code = "insurance.zero_amount"

    def __init__(self, token_address: str) -> None:
        self.token_address = token_address
        super().__init__(f"Insurance amount is zero for asset {token_address}")


class ZeroAmountError(ValidationError):
    code = "liquidity.zero_amount"

    def __init__(self, asset: str) -> None:
        self.asset = asset
        super().__init__(f"Amount is zero for asset {asset}")


class ScopeChainIdSizeMismatchError(ValidationError):
    code = "insurance.scope_chain_id_size_mismatch"

    def __init__(self, scope_length: int, chain_ids_length: int) -> None:
        self.scope_length = int(scope_length)
        self.chain_ids_length = int(chain_ids_length)
        super().__init__(
            f"Scope has {self.scope_length} entries but chain ids has {self.chain_ids_length}"
        )


class ScopeScoreSizeMismatchError(ValidationError):
    code = "insurance.scope_score_size_mismatch"

    def __init__(self, scope_length: int, scss_length: int) -> None:
        self.scope_length = int(scope_length)
        self.scss_length = int(scss_length)
        super().__init__(f"Scope has {self.scope_length} entries but scss has {self.scss_length}")


class InvalidScoreError(ValidationError):
    code = "insurance.invalid_score"

    def __init__(self, index: int, score: object) -> None:
        self.index = int(index)
        self.score = score
        super().__init__(f"Score at index {self.index} is not a byte: {score!r}")


# -----------------
# Liquidity
# -----------------


class LiquidityError(LedgerError):
    code = "liquidity.error"


class AmountGreaterThanAvailableError(LiquidityError):
    code = "liquidity.amount_greater_than_available"

    def __init__(self, requested: int, available: int, asset: str) -> None:
        self.requested = int(requested)
        self.available = int(available)
        self.asset = asset
        super().__init__(
            f"Requested {self.requested} but only {self.available} available for asset {asset}"
        )


# -----------------
# Insurance lifecycle
# -----------------


class InsuranceStateError(LedgerError):
    code = "insurance.state"


class AlreadyRequestedError(InsuranceStateError):
    code = "insurance.already_requested"

    def __init__(self, owner: str) -> None:
        self.owner = owner
        super().__init__(f"Insurance already requested by {owner}")


class NotRequestedError(InsuranceStateError):
    code = "insurance.not_requested"

    def __init__(self, owner: str) -> None:
        self.owner = owner
        super().__init__(f"No insurance requested by {owner}")


class AlreadyApprovedError(InsuranceStateError):
    code = "insurance.already_approved"

    def __init__(self, owner: str) -> None:
        self.owner = owner
        super().__init__(f"Insurance of {owner} is already approved")


class InvalidInsuranceStateError(InsuranceStateError):
    code = "insurance.invalid_state"

    def __init__(self, owner: str, status: str, operation: str) -> None:
        self.owner = owner
        self.status = str(status)
        self.operation = operation
        super().__init__(f"Cannot {operation} insurance of {owner} in state {self.status}")


# -----------------
# Access control
# -----------------


class AccessDeniedError(LedgerError):
    code = "access.denied"


class MissingRoleError(AccessDeniedError):
    code = "access.missing_role"

    def __init__(self, principal: str, role: str) -> None:
        self.principal = principal
        self.role = str(role)
        super().__init__(f"Account {principal} is missing role {self.role}")


class NotDefaultAdminError(MissingRoleError):
    code = "access.not_default_admin"

    def __init__(self, principal: str) -> None:
        super().__init__(principal, "default_admin")


class NotInsuranceAdminError(AccessDeniedError):
    code = "access.not_insurance_admin"

    def __init__(self, principal: str, owner: str) -> None:
        self.principal = principal
        self.owner = owner
        super().__init__(f"Account {principal} is not the admin of the insurance of {owner}")


class AdminTransferError(AccessDeniedError):
    """Default admin transfer is not pending, not yet due, or not addressed to the caller."""

    code = "access.admin_transfer"


# -----------------
# Custody
# -----------------


class CustodyError(LedgerError):
    code = "custody.error"


class InsufficientBalanceError(CustodyError):
    code = "custody.insufficient_balance"

    def __init__(self, account: str, asset: str, balance: int, needed: int) -> None:
        self.account = account
        self.asset = asset
        self.balance = int(balance)
        self.needed = int(needed)
        super().__init__(f"{account} holds {self.balance} of {asset}, needs {self.needed}")


class InsufficientAllowanceError(CustodyError):
    code = "custody.insufficient_allowance"

    def __init__(self, account: str, spender: str, asset: str, allowance: int, needed: int) -> None:
        self.account = account
        self.spender = spender
        self.asset = asset
        self.allowance = int(allowance)
        self.needed = int(needed)
        super().__init__(
            f"{account} allows {spender} {self.allowance} of {asset}, needs {self.needed}"
        )


# -----------------
# Arithmetic
# -----------------


class ArithmeticOverflowError(LedgerError):
    code = "arithmetic.overflow"


class ArithmeticUnderflowError(LedgerError):
    code = "arithmetic.underflow"
