"""
Session controller - Login use case.

Turns a raw credential failure into an actionable, categorized outcome:

    probe THROTTLED              -> RateLimited (IdentityStore untouched)
    create_session succeeds      -> Session
    create_session fails, then diagnosis:
        ABSENT                   -> NoAccount
        PROFILE_ONLY             -> IdentityMissing
        IDENTITY_ONLY            -> WrongPassword
        BOTH                     -> SyncPasswordRequired

PROFILE_ONLY is deliberately not repaired here: provisioning a credential
from a failed login would let anyone discover registered emails by
watching for the side effect. Login never writes to either store.
"""

import logging
from dataclasses import dataclass

from .diagnostics import DiagnosticClassifier, RateLimitProbe
from .exceptions import (
    IdentityMissing,
    NoAccount,
    RateLimited,
    ReconciliationError,
    StoreUnavailable,
    SyncPasswordRequired,
    WrongPassword,
    translate_store_error,
)
from .ports import (
    DiagnosticState,
    IdentityErrorKind,
    IdentityStore,
    IdentityStoreError,
    ProfileRecord,
    ProfileStore,
    ProfileStoreError,
    Session,
    ThrottleStatus,
)
from .profiles import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class SessionController:
    """Domain service for the login use case."""

    profiles: ProfileStore
    identities: IdentityStore
    classifier: DiagnosticClassifier
    probe: RateLimitProbe

    def login(self, email: str, password: str) -> Session:
        """
        Authenticate against IdentityStore and diagnose any failure.

        Args:
            email: User's email (will be normalized)
            password: User's password

        Returns:
            Session on success

        Raises:
            RateLimited: Throttling detected before or during the attempt
            StoreUnavailable: A store could not be reached
            NoAccount, IdentityMissing, WrongPassword, SyncPasswordRequired:
                Diagnosed failure
        """
        normalized_email = normalize_email(email)

        throttle = self.probe.check_throttled()
        if throttle is ThrottleStatus.THROTTLED:
            raise RateLimited()
        if throttle is ThrottleStatus.STORE_ERROR:
            raise StoreUnavailable()

        try:
            session = self.identities.create_session(normalized_email, password)
        except IdentityStoreError as exc:
            if exc.kind in (IdentityErrorKind.RATE_LIMITED, IdentityErrorKind.UNAVAILABLE):
                raise translate_store_error(exc) from exc
            logger.info("Login failed for %s (%s), diagnosing", normalized_email, exc.kind.value)
            raise self._diagnosed_failure(normalized_email, password) from exc

        logger.info("Login succeeded for %s", normalized_email)
        return session

    def load_profile(self, email: str) -> ProfileRecord | None:
        """
        Read the business profile to merge with a fresh session.

        A missing profile after a successful login is identity-only drift;
        it is reported to the caller as None, not repaired.
        """
        normalized_email = normalize_email(email)
        try:
            profile = self.profiles.find_by_email(normalized_email)
        except ProfileStoreError as exc:
            raise translate_store_error(exc) from exc
        if profile is None:
            logger.warning("Signed-in account %s has no business profile", normalized_email)
        return profile

    def logout(self, account_id: str, session_id: str) -> None:
        try:
            self.identities.delete_session(account_id, session_id)
        except IdentityStoreError as exc:
            if exc.kind is IdentityErrorKind.NOT_FOUND:
                return
            raise translate_store_error(exc) from exc

    def discard(self, session: Session) -> None:
        """Close a session whose id never reaches the caller; failures are only logged."""
        try:
            self.identities.delete_session(session.account_id, session.id)
        except IdentityStoreError as exc:
            logger.error("Could not close undelivered session for %s: %s", session.email, exc)

    def _diagnosed_failure(self, email: str, password: str) -> ReconciliationError:
        state = self.classifier.classify(email)

        if state is DiagnosticState.ABSENT:
            return NoAccount()
        if state is DiagnosticState.PROFILE_ONLY:
            logger.warning("Drift detected for %s: profile without identity", email)
            return IdentityMissing()
        if state is DiagnosticState.IDENTITY_ONLY:
            return WrongPassword()
        logger.warning("Drift suspected for %s: password rejected with both records present", email)
        return SyncPasswordRequired(email=email, password=password)
