from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from api.auth import AuthDep
from api.deps import get_workflow
from api.schemas.ledger import InsuranceResponse
from ledger.core.exceptions import NotRequestedError
from ledger.core.types import Insurance, normalize_address
from ledger.insurance.workflow import InsuranceWorkflow

router = APIRouter(prefix="/insurance", dependencies=[AuthDep])


def _to_response(wf: InsuranceWorkflow, owner: str, ins: Insurance) -> InsuranceResponse:
    return InsuranceResponse(
        owner=owner,
        admin=ins.admin,
        status=str(wf.status_of(owner)),
        stored_status=str(ins.status),
        protocol_name=ins.protocol_name,
        protocol_website=ins.protocol_website,
        contact_information=ins.contact_information,
        scope=list(ins.scope),
        scss=list(ins.scss),
        chain_ids=list(ins.chain_ids),
        token_address=ins.token.token_address,
        insurance_amount=str(ins.token.insurance_amount),
        insurance_price=str(ins.payment.insurance_price),
        payment_deadline=ins.payment.payment_deadline,
        created_at=ins.created_at,
        updated_at=ins.updated_at,
    )


@router.get("/by-contract/{contract}", response_model=list[InsuranceResponse])
def insurance_by_contract(
    contract: str = Path(..., description="Covered contract address"),
    wf: InsuranceWorkflow = Depends(get_workflow),
) -> list[InsuranceResponse]:
    return [_to_response(wf, owner, ins) for owner, ins in wf.get_insurance(contract)]


@router.get("/{owner}", response_model=InsuranceResponse)
def insurance_of(
    owner: str = Path(..., description="Owner address"),
    wf: InsuranceWorkflow = Depends(get_workflow),
) -> InsuranceResponse:
    key = normalize_address(owner)
    ins = wf.insurance_of(key)
    if not ins.exists:
        raise NotRequestedError(key)
    return _to_response(wf, key, ins)
