"""ledger.insurance.pricing

Premium models.

How a yearly price is computed is not the ledger's business. The ledger only
needs a number when a record is approved or its amount changes. The flat rate
below exists so that number is never made up on the spot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ledger.core.config import PremiumConfig
from ledger.core.types import Insurance


@runtime_checkable
class PremiumModel(Protocol):
    def price(self, insurance: Insurance) -> int:
        """Yearly price, in units of the insured asset."""
        ...


@dataclass(frozen=True, slots=True)
class FlatRatePremium:
    rate_bps: int = 200
    min_price: int = 0

    @classmethod
    def from_config(cls, cfg: PremiumConfig) -> FlatRatePremium:
        return cls(rate_bps=int(cfg.rate_bps), min_price=int(cfg.min_price))

    def price(self, insurance: Insurance) -> int:
        amount = int(insurance.token.insurance_amount)
        return max(int(self.min_price), amount * int(self.rate_bps) // 10_000)
