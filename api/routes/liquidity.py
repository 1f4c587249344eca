from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from api.auth import AuthDep
from api.deps import get_workflow
from api.schemas.ledger import PoolResponse
from ledger.core.types import normalize_address
from ledger.insurance.workflow import InsuranceWorkflow

router = APIRouter(prefix="/liquidity", dependencies=[AuthDep])


def _pool(wf: InsuranceWorkflow, asset: str) -> PoolResponse:
    return PoolResponse(
        asset=asset,
        available=str(wf.get_available_liquidity(asset)),
        reserved=str(wf.reserved_liquidity(asset)),
        fees_collected=str(wf.fees_collected(asset)),
    )


@router.get("", response_model=list[PoolResponse])
def list_pools(wf: InsuranceWorkflow = Depends(get_workflow)) -> list[PoolResponse]:
    return [_pool(wf, asset) for asset in wf.list_pools()]


@router.get("/{asset}", response_model=PoolResponse)
def get_pool(
    asset: str = Path(..., description="Asset address"),
    wf: InsuranceWorkflow = Depends(get_workflow),
) -> PoolResponse:
    # An asset never seen reports zero rather than 404.
    return _pool(wf, normalize_address(asset))
