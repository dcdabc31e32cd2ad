from fastapi import HTTPException

from audience_api.shared.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PipelineError,
    TransientStoreError,
    ValidationError,
)

_STATUS_CODES = {
    NotFoundError: 404,
    ValidationError: 400,
    ConflictError: 409,
    ExternalServiceError: 502,
    TransientStoreError: 503,
}


def http_error(exc: PipelineError) -> HTTPException:
    status_code = 500
    for exc_type, code in _STATUS_CODES.items():
        if isinstance(exc, exc_type):
            status_code = code
            break
    if exc.detail:
        return HTTPException(status_code=status_code, detail={"message": exc.message, **exc.detail})
    return HTTPException(status_code=status_code, detail=exc.message)
