from api.schemas.common import ErrorBody, ErrorResponse
from api.schemas.ledger import EventResponse, InsuranceResponse, PoolResponse

__all__ = [
    "ErrorBody",
    "ErrorResponse",
    "EventResponse",
    "InsuranceResponse",
    "PoolResponse",
]
