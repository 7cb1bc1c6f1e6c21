"""
Registration orchestrator - Signup across two unlinked stores.

ProfileStore is the authoritative, uniqueness-checked system of record,
so the profile is always created first. IdentityStore creation is
best-effort and independently retryable; when it cannot be completed the
registration still succeeds at the profile level and returns Deferred.

Flow
====

    1. profile exists for email            -> AlreadyRegistered
    2. create profile (mandatory)          -> failure aborts, no identity calls
    3. create identity with a fresh id:
         success                           -> sign in -> Authenticated
         COLLISION                         -> sign in with supplied password
             success                       -> Authenticated
             failure                       -> Deferred(existing_identity_wrong_password)
         RATE_LIMITED                      -> Deferred(identity_creation_failed)
         other                             -> retry once with a new id
             retry fails                   -> Deferred(identity_creation_failed)
             retry COLLISION               -> handled as COLLISION above

The profile is never rolled back. A crash between steps 2 and 3 leaves the
email PROFILE_ONLY, which the login path diagnoses as IdentityMissing.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from .exceptions import AlreadyRegistered, translate_store_error
from .ports import (
    Authenticated,
    Deferred,
    IdentityAccount,
    IdentityErrorKind,
    IdentityStore,
    IdentityStoreError,
    ProfileRecord,
    ProfileStore,
    ProfileStoreError,
)
from .profiles import (
    display_name,
    generate_account_id,
    hash_legacy_password,
    link_identity,
    normalize_profile_fields,
)

logger = logging.getLogger(__name__)

REASON_EXISTING_IDENTITY_WRONG_PASSWORD = "existing_identity_wrong_password"
REASON_IDENTITY_CREATION_FAILED = "identity_creation_failed"
REASON_SESSION_CREATION_FAILED = "session_creation_failed"


@dataclass
class RegistrationOrchestrator:
    """
    Domain service for user registration.

    Orchestrates the registration flow: validation, uniqueness check,
    profile creation, then best-effort identity creation and sign-in.
    """

    profiles: ProfileStore
    identities: IdentityStore
    account_id_prefix: str = "user_"
    bcrypt_rounds: int = 10

    def register(self, email: str, password: str, fields: Mapping[str, str | None]) -> Authenticated | Deferred:
        """
        Register a new customer.

        Args:
            email: User's email address (will be normalized)
            password: User's password (handed to IdentityStore)
            fields: Profile fields; which are required depends on account_type

        Returns:
            Authenticated when the user is signed in, Deferred when only the
            profile side could be guaranteed

        Raises:
            ProfileValidationError: Invalid profile data
            AlreadyRegistered: A profile already exists for the email
            RateLimited, StoreUnavailable: ProfileStore could not be used
        """
        profile_fields = normalize_profile_fields(email, fields)
        normalized_email = profile_fields.email

        try:
            existing = self.profiles.find_by_email(normalized_email)
        except ProfileStoreError as exc:
            raise translate_store_error(exc) from exc
        if existing is not None:
            raise AlreadyRegistered()

        try:
            profile = self.profiles.create(
                profile_fields, hash_legacy_password(password, self.bcrypt_rounds)
            )
        except ProfileStoreError as exc:
            logger.error("Profile creation failed for %s: %s", normalized_email, exc)
            raise translate_store_error(exc) from exc
        logger.info("Profile %s created for %s", profile.id, normalized_email)

        name = display_name(profile_fields)
        try:
            account = self._create_identity(normalized_email, password, name)
        except IdentityStoreError as exc:
            if exc.kind is IdentityErrorKind.COLLISION:
                return self._sign_in_existing_identity(profile, password)
            logger.warning("Identity creation failed for %s: %s", normalized_email, exc)
            return self._deferred(profile, REASON_IDENTITY_CREATION_FAILED)

        logger.info("Identity %s created for %s", account.id, normalized_email)
        profile = link_identity(self.profiles, profile, account.id)
        try:
            session = self.identities.create_session(normalized_email, password)
        except IdentityStoreError as exc:
            logger.warning("Sign-in after registration failed for %s: %s", normalized_email, exc)
            return self._deferred(profile, REASON_SESSION_CREATION_FAILED)
        return Authenticated(session=session, profile=profile)

    def _create_identity(self, email: str, password: str, name: str) -> IdentityAccount:
        """Create the identity, retrying once with a new id on a non-collision failure."""
        try:
            return self.identities.create_account(
                generate_account_id(self.account_id_prefix), email, password, name
            )
        except IdentityStoreError as exc:
            if exc.kind in (IdentityErrorKind.COLLISION, IdentityErrorKind.RATE_LIMITED):
                raise
            logger.warning("Identity creation failed for %s (%s), retrying with a new id", email, exc)

        return self.identities.create_account(
            generate_account_id(self.account_id_prefix), email, password, name
        )

    def _sign_in_existing_identity(self, profile: ProfileRecord, password: str) -> Authenticated | Deferred:
        logger.info("Identity already exists for %s, attempting sign-in", profile.email)
        try:
            session = self.identities.create_session(profile.email, password)
        except IdentityStoreError as exc:
            logger.warning(
                "Existing identity for %s rejected the registration password: %s", profile.email, exc
            )
            return self._deferred(profile, REASON_EXISTING_IDENTITY_WRONG_PASSWORD)
        profile = link_identity(self.profiles, profile, session.account_id)
        return Authenticated(session=session, profile=profile)

    def _deferred(self, profile: ProfileRecord, reason: str) -> Deferred:
        logger.warning("Registration for %s deferred: %s", profile.email, reason)
        return Deferred(profile=profile, reason=reason)
