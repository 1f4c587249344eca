"""ledger.custody

Asset custody: the boundary between the ledger's counters and real balances.

Only one implementation ships:
- ``TokenLedger``: paper custody, standard token accounting kept in the ledger database
"""

from __future__ import annotations

from ledger.custody.base import AssetCustody
from ledger.custody.token_ledger import TokenLedger

__all__ = ["AssetCustody", "TokenLedger"]
