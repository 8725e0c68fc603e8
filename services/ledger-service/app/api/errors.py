"""Translate domain exceptions into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..domain.errors import (
    DuplicateRecordError,
    InactiveAccountError,
    InvalidAssertionError,
    InvalidCredentialError,
    LedgerError,
    MissingTenantContextError,
    OwnerProtectedError,
    PasswordMismatchError,
    PermissionDeniedError,
    RecordNotFoundError,
    SessionActiveError,
    TenantConflictError,
    UserQuotaExceededError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[LedgerError], int] = {
    InvalidCredentialError: status.HTTP_401_UNAUTHORIZED,
    InvalidAssertionError: status.HTTP_401_UNAUTHORIZED,
    MissingTenantContextError: status.HTTP_401_UNAUTHORIZED,
    InactiveAccountError: status.HTTP_403_FORBIDDEN,
    PermissionDeniedError: status.HTTP_403_FORBIDDEN,
    UserQuotaExceededError: status.HTTP_403_FORBIDDEN,
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateRecordError: status.HTTP_409_CONFLICT,
    SessionActiveError: status.HTTP_409_CONFLICT,
    OwnerProtectedError: status.HTTP_400_BAD_REQUEST,
    PasswordMismatchError: status.HTTP_400_BAD_REQUEST,
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    TenantConflictError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: LedgerError) -> int:
    """Resolve the HTTP status for ``exc``, honouring subclass relationships."""
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return status.HTTP_400_BAD_REQUEST


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_for(exc)
    if isinstance(exc, TenantConflictError):
        logger.error("aborting %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"detail": "internal error"}, status_code=status_code)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse({"detail": str(exc)}, status_code=status_code, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
