"""
Domain exceptions - Semantic error types for login, registration and repair.

Every error carries a machine-readable kind (drives UI branching: offer
"create account" vs "reset password" vs "try again later") and a
human-readable reason. Provider and driver exceptions never leave the
domain; adapters raise ProfileStoreError / IdentityStoreError and the
services translate them into the types below.
"""

from enum import Enum

from .ports import (
    DiagnosticState,
    IdentityErrorKind,
    IdentityStoreError,
    ProfileErrorKind,
    ProfileStoreError,
)


class ErrorKind(str, Enum):
    NO_ACCOUNT = "no_account"
    WRONG_PASSWORD = "wrong_password"
    IDENTITY_MISSING = "identity_missing"
    SYNC_PASSWORD_REQUIRED = "sync_password_required"
    RATE_LIMITED = "rate_limited"
    COLLISION = "collision"
    ALREADY_REGISTERED = "already_registered"
    VALIDATION_ERROR = "validation_error"
    STORE_UNAVAILABLE = "store_unavailable"
    REPAIR_NOT_APPLICABLE = "repair_not_applicable"


class ReconciliationError(Exception):
    """Base class for reconciliation domain errors."""

    kind: ErrorKind = ErrorKind.STORE_UNAVAILABLE
    default_reason = "Unexpected error"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class NoAccount(ReconciliationError):
    """Neither store knows the email."""

    kind = ErrorKind.NO_ACCOUNT
    default_reason = "No account for this email"


class WrongPassword(ReconciliationError):
    """Identity account exists and rejected the password."""

    kind = ErrorKind.WRONG_PASSWORD
    default_reason = "Incorrect password"


class IdentityMissing(ReconciliationError):
    """Profile exists, credential store does not."""

    kind = ErrorKind.IDENTITY_MISSING
    default_reason = "Profile exists but no credential is configured for it"


class SyncPasswordRequired(ReconciliationError):
    """
    Both records exist but the password was rejected.

    Carries the attempted credentials as input for repair_sync_password.
    They are never serialized into a response.
    """

    kind = ErrorKind.SYNC_PASSWORD_REQUIRED
    default_reason = "Account exists in both stores; the password must be synchronized"

    def __init__(self, email: str, password: str, reason: str | None = None) -> None:
        super().__init__(reason)
        self.email = email
        self.password = password

    def __repr__(self) -> str:
        return f"SyncPasswordRequired(email={self.email!r})"


class RateLimited(ReconciliationError):
    kind = ErrorKind.RATE_LIMITED
    default_reason = "Too many attempts, please wait a few minutes"


class Collision(ReconciliationError):
    """An identity account already exists for this email."""

    kind = ErrorKind.COLLISION
    default_reason = "An identity account already exists for this email"


class AlreadyRegistered(ReconciliationError):
    kind = ErrorKind.ALREADY_REGISTERED
    default_reason = "A profile already exists for this email"


class ProfileValidationError(ReconciliationError):
    kind = ErrorKind.VALIDATION_ERROR
    default_reason = "Invalid profile data"


class StoreUnavailable(ReconciliationError):
    """A store could not be reached or timed out; nothing can be inferred."""

    kind = ErrorKind.STORE_UNAVAILABLE
    default_reason = "Service temporarily unavailable"


class RepairNotApplicable(ReconciliationError):
    """A repair was requested for an email whose diagnosis does not allow it."""

    kind = ErrorKind.REPAIR_NOT_APPLICABLE
    default_reason = "Repair does not apply to the current account state"

    def __init__(self, state: DiagnosticState, reason: str | None = None) -> None:
        super().__init__(reason or f"{self.default_reason} ({state.value})")
        self.state = state


def translate_store_error(exc: ProfileStoreError | IdentityStoreError) -> ReconciliationError:
    """
    Map an adapter failure onto the domain error a caller should see.

    Kinds that only make sense in context (INVALID_CREDENTIALS, NOT_FOUND)
    are handled by the services themselves before falling back to this.
    """
    if exc.kind in (ProfileErrorKind.RATE_LIMITED, IdentityErrorKind.RATE_LIMITED):
        return RateLimited()
    if exc.kind is ProfileErrorKind.DUPLICATE_KEY:
        return AlreadyRegistered()
    if exc.kind is ProfileErrorKind.INVALID:
        return ProfileValidationError(str(exc))
    if exc.kind is IdentityErrorKind.COLLISION:
        return Collision()
    return StoreUnavailable()
