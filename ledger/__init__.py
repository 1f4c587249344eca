"""ledger — custodial insurance ledger.

Pooled collateral per asset, reserved slice by slice for the protocols that ask
to be covered. Every unit that enters custody is either available, reserved, or
paid out. Nothing else.
"""

from __future__ import annotations

__all__ = [
    "__version__",
    "ZERO_ADDRESS",
    "UINT256_MAX",
]

__version__ = "1.0.0"

# The sentinel. An insurance record whose token address is this does not exist.
ZERO_ADDRESS = "0x" + "0" * 40

UINT256_MAX = 2**256 - 1
