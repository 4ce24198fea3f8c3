from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse

from ledgerflow.platform.errors import (
    ConcurrencyConflict,
    ConfigurationError,
    InsufficientStock,
    InvalidAllocation,
    InvalidReference,
    InvalidVoucherState,
    PostingError,
    UnbalancedEntry,
)

_STATUS_BY_ERROR: dict[type[PostingError], int] = {
    InvalidReference: status.HTTP_404_NOT_FOUND,
    UnbalancedEntry: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ConfigurationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidAllocation: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InsufficientStock: status.HTTP_409_CONFLICT,
    ConcurrencyConflict: status.HTTP_409_CONFLICT,
    InvalidVoucherState: status.HTTP_409_CONFLICT,
}


def status_for(exc: PostingError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def posting_error_handler(request: Request, exc: PostingError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content={"detail": exc.to_dict()})
