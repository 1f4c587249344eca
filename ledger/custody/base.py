"""ledger.custody.base

Custody boundary.

The ledger never moves assets itself. It asks custody to pull collateral in
from a provider or push it out to a recipient, and custody either does all of
it or raises.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class AssetCustody(Protocol):
    def transfer_into(self, asset: str, source: str, amount: int) -> None:
        """Pull ``amount`` of ``asset`` from ``source`` into custody.

        Raises CustodyError when the source lacks balance or allowance.
        """
        ...

    def transfer_out(self, asset: str, to: str, amount: int) -> None:
        """Push ``amount`` of ``asset`` from custody to ``to``."""
        ...

    def custody_balance(self, asset: str) -> int: ...
