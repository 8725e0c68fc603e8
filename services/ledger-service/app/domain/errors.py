"""Domain exceptions raised by ledger services and mapped to HTTP by the API layer."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure the service reports to callers."""

    default_message = "request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class InvalidCredentialError(LedgerError):
    """Wrong email/password pair or an unreadable stored credential."""

    default_message = "invalid email or password"


class InactiveAccountError(LedgerError):
    default_message = "account is inactive"


class InvalidAssertionError(LedgerError):
    """Identity assertion missing, malformed, forged, or expired."""

    default_message = "unauthenticated"


class TenantConflictError(LedgerError):
    """A unit of work tried to bind a second, different tenant."""

    default_message = "tenant context already bound to a different tenant"


class MissingTenantContextError(LedgerError):
    default_message = "tenant context required"


class SessionActiveError(LedgerError):
    default_message = "an authenticated session is already active for this request"


class RecordNotFoundError(LedgerError):
    def __init__(self, kind: str = "record") -> None:
        super().__init__(f"{kind} not found")
        self.kind = kind


class DuplicateRecordError(LedgerError):
    default_message = "record already exists"


class DuplicateSubdomainError(DuplicateRecordError):
    default_message = "subdomain already exists"


class DuplicateEmailError(DuplicateRecordError):
    default_message = "email already exists in this tenant"


class PermissionDeniedError(LedgerError):
    default_message = "insufficient role"


class OwnerProtectedError(LedgerError):
    default_message = "owner accounts cannot be changed"


class UserQuotaExceededError(LedgerError):
    default_message = "tenant user limit reached"


class PasswordMismatchError(LedgerError):
    default_message = "current password is incorrect"


class ValidationFailedError(LedgerError):
    default_message = "invalid request"
