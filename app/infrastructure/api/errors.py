# app/infrastructure/api/errors.py
from fastapi import HTTPException

from app.domain.exceptions import (
    AllocationFailed,
    AuthorityRejected,
    AuthorityUnavailable,
    CancellationConflict,
    DocumentNotFound,
    InsufficientStock,
    InvoicingError,
    ValidationError,
)

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (DocumentNotFound, 404),
    (InsufficientStock, 409),
    (CancellationConflict, 409),
    (AuthorityRejected, 422),
    (AuthorityUnavailable, 503),
    (AllocationFailed, 503),
)


def to_http(error: InvoicingError) -> HTTPException:
    status_code = next((code for cls, code in STATUS_BY_ERROR if isinstance(error, cls)), 500)
    return HTTPException(status_code=status_code, detail={"code": error.code, "message": str(error)})
