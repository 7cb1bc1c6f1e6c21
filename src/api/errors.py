"""
API error translation.

Maps domain ReconciliationErrors onto HTTP responses. Every error body
carries the machine-readable kind and a human-readable detail:

    {"kind": "wrong_password", "detail": "Incorrect password"}

Attempted credentials carried by SyncPasswordRequired are never echoed.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.domain.exceptions import ErrorKind, ReconciliationError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NO_ACCOUNT: status.HTTP_404_NOT_FOUND,
    ErrorKind.WRONG_PASSWORD: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.IDENTITY_MISSING: status.HTTP_409_CONFLICT,
    ErrorKind.SYNC_PASSWORD_REQUIRED: status.HTTP_409_CONFLICT,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.COLLISION: status.HTTP_409_CONFLICT,
    ErrorKind.ALREADY_REGISTERED: status.HTTP_409_CONFLICT,
    ErrorKind.VALIDATION_ERROR: 422,  # same code FastAPI uses for request validation
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.REPAIR_NOT_APPLICABLE: status.HTTP_409_CONFLICT,
}

RETRY_AFTER_SECONDS = 60


async def reconciliation_error_handler(request: Request, exc: ReconciliationError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind.value)

    headers = {}
    if exc.kind is ErrorKind.RATE_LIMITED:
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

    return JSONResponse(
        status_code=status_code,
        content={"kind": exc.kind.value, "detail": exc.reason},
        headers=headers,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReconciliationError, reconciliation_error_handler)
