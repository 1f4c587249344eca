"""ledger.insurance

Insurance records and the workflow that moves them:
- ``InsuranceRegistry``: one record per owner
- ``InsuranceStateMachine``: legal transitions, lazy payment statuses
- ``InsuranceWorkflow``: every operation that touches pools, records, or custody
"""

from __future__ import annotations

from ledger.insurance.pricing import FlatRatePremium, PremiumModel
from ledger.insurance.registry import InsuranceRegistry
from ledger.insurance.state import ALLOWED_TRANSITIONS, InsuranceStateMachine, effective_status
from ledger.insurance.workflow import InsuranceWorkflow

__all__ = [
    "ALLOWED_TRANSITIONS",
    "FlatRatePremium",
    "InsuranceRegistry",
    "InsuranceStateMachine",
    "InsuranceWorkflow",
    "PremiumModel",
    "effective_status",
]
