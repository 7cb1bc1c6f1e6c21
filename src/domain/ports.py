"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from the two external stores, plus the value types that cross them.
Adapters implement these protocols and translate their own failures
into ProfileStoreError / IdentityStoreError with a structured kind.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class DiagnosticState(str, Enum):
    """
    Presence of an email across ProfileStore and IdentityStore.

    Derived on demand, never stored:
    - ABSENT: neither store knows the email
    - PROFILE_ONLY: business profile exists, no credential
    - IDENTITY_ONLY: credential exists, no business profile
    - BOTH: consistent (target state for every active customer)
    """

    ABSENT = "ABSENT"
    PROFILE_ONLY = "PROFILE_ONLY"
    IDENTITY_ONLY = "IDENTITY_ONLY"
    BOTH = "BOTH"

    @classmethod
    def from_presence(cls, profile_exists: bool, identity_exists: bool) -> "DiagnosticState":
        if profile_exists and identity_exists:
            return cls.BOTH
        if profile_exists:
            return cls.PROFILE_ONLY
        if identity_exists:
            return cls.IDENTITY_ONLY
        return cls.ABSENT


class ThrottleStatus(Enum):
    """Result of the rate-limit probe."""

    OK = "ok"
    THROTTLED = "throttled"
    STORE_ERROR = "store_error"


class AccountType(str, Enum):
    INDIVIDUAL = "individual"
    PROFESSIONAL = "professional"


class ProfileErrorKind(Enum):
    DUPLICATE_KEY = "duplicate_key"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"


class IdentityErrorKind(Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_FOUND = "not_found"
    COLLISION = "collision"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    OTHER = "other"


class ProfileStoreError(Exception):
    """Failure reported by a ProfileStore adapter."""

    def __init__(self, kind: ProfileErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


class IdentityStoreError(Exception):
    """Failure reported by an IdentityStore adapter."""

    def __init__(self, kind: IdentityErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass(frozen=True)
class ProfileFields:
    """Validated, user-supplied profile data (see profiles.normalize_profile_fields)."""

    email: str
    account_type: AccountType
    first_name: str = ""
    last_name: str = ""
    company_name: str = ""
    siret: str = ""
    vat_number: str = ""
    phone: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = "France"


@dataclass
class ProfileRecord:
    """Business profile as persisted in ProfileStore."""

    id: str
    email: str
    account_type: AccountType
    first_name: str = ""
    last_name: str = ""
    company_name: str = ""
    siret: str = ""
    vat_number: str = ""
    phone: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = "France"
    status: str = "active"
    legacy_password_digest: str | None = None
    identity_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class IdentityAccount:
    id: str
    email: str
    name: str


@dataclass(frozen=True)
class Session:
    id: str
    account_id: str
    email: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class RecoveryToken:
    id: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class Authenticated:
    """Registration outcome: profile and identity both established, user signed in."""

    session: Session
    profile: ProfileRecord


@dataclass(frozen=True)
class Deferred:
    """Registration outcome: profile created, identity side left for a later login."""

    profile: ProfileRecord
    reason: str
    account_created: bool = True
    requires_manual_login: bool = True


@dataclass(frozen=True)
class RequiresRecoveryFlow:
    """Password sync outcome: an out-of-band recovery email was started."""

    token: RecoveryToken


class ProfileStore(Protocol):
    """Port interface for the business-profile document store."""

    def find_by_email(self, email: str) -> ProfileRecord | None:
        """
        Look up the profile keyed by this (normalized) email.

        Returns:
            The profile, or None when no record exists

        Raises:
            ProfileStoreError: RATE_LIMITED or UNAVAILABLE
        """
        ...

    def create(self, fields: ProfileFields, legacy_password_digest: str | None) -> ProfileRecord:
        """
        Insert a new profile.

        Raises:
            ProfileStoreError: DUPLICATE_KEY if the email is taken,
                INVALID if the record violates a constraint,
                RATE_LIMITED or UNAVAILABLE otherwise
        """
        ...

    def update(self, profile_id: str, patch: dict[str, Any]) -> ProfileRecord:
        """
        Apply a partial update to an existing profile.

        Raises:
            ProfileStoreError: NOT_FOUND, INVALID, RATE_LIMITED or UNAVAILABLE
        """
        ...

    def ping(self) -> None:
        """
        Cheap non-credential read used to detect throttling.

        Raises:
            ProfileStoreError: RATE_LIMITED or UNAVAILABLE
        """
        ...


class IdentityStore(Protocol):
    """Port interface for the external identity / session service."""

    def create_session(self, email: str, password: str) -> Session:
        """
        Verify credentials and open a session.

        Raises:
            IdentityStoreError: INVALID_CREDENTIALS, NOT_FOUND, RATE_LIMITED,
                UNAVAILABLE or OTHER
        """
        ...

    def create_account(self, account_id: str, email: str, password: str, name: str) -> IdentityAccount:
        """
        Create an identity account bound to email/password.

        Raises:
            IdentityStoreError: COLLISION if an account already exists for
                the email or id, RATE_LIMITED, UNAVAILABLE or OTHER
        """
        ...

    def start_recovery(self, email: str, callback_url: str) -> RecoveryToken:
        """Start the provider's out-of-band (email) credential recovery."""
        ...

    def delete_session(self, account_id: str, session_id: str) -> None:
        """Close a session previously returned by create_session for account_id."""
        ...


class IdentityLookup(Protocol):
    """Optional provider-native existence check (no credential attempt)."""

    def account_exists(self, email: str) -> bool:
        """
        Raises:
            IdentityStoreError: RATE_LIMITED, UNAVAILABLE or OTHER
        """
        ...
