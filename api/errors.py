from __future__ import annotations

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from ledger.core.exceptions import (
    AccessDeniedError,
    ConfigError,
    CustodyError,
    EventStoreError,
    InsuranceStateError,
    LedgerError,
    LiquidityError,
    NotRequestedError,
    ValidationError,
)


class ApiError(Exception):
    def __init__(self, code: str, message: str, status: int = 400, **extra: object) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.extra = extra


# First match along the exception's MRO wins.
_LEDGER_STATUS: dict[type[LedgerError], int] = {
    NotRequestedError: 404,
    ValidationError: 422,
    AccessDeniedError: 403,
    InsuranceStateError: 409,
    LiquidityError: 409,
    CustodyError: 409,
    ConfigError: 500,
    EventStoreError: 500,
}


def status_for(exc: LedgerError) -> int:
    for cls in type(exc).__mro__:
        if cls in _LEDGER_STATUS:
            return _LEDGER_STATUS[cls]
    return 400


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    body = {"error": {"code": exc.code, "message": exc.message, **exc.extra}}
    return JSONResponse(status_code=exc.status, content=body)


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    # Error parameters travel as-is; amounts are stringified to survive uint256.
    params = {k: (str(v) if isinstance(v, int) and not isinstance(v, bool) else v) for k, v in vars(exc).items()}
    body = {"error": {"code": exc.code, "message": str(exc), **jsonable_encoder(params)}}
    return JSONResponse(status_code=status_for(exc), content=body)
