"""
Diagnostic classifier and rate-limit probe.

The classifier answers "which of the two stores currently hold a record
for this email?" without writing to either. The probe answers "is the
backend throttling us right now?" without spending a credential attempt.

Existence in IdentityStore
==========================

When an IdentityLookup is wired in, existence is read directly. Without
one, the classifier falls back to submitting a throwaway password and
reading the *kind* of failure:

    INVALID_CREDENTIALS -> account exists
    NOT_FOUND           -> account does not exist
    OTHER               -> treated as existing (never invites a duplicate)
    RATE_LIMITED        -> RateLimited raised
    UNAVAILABLE         -> StoreUnavailable raised

The fallback counts as a failed credential attempt at the provider.
"""

import logging
import secrets
from dataclasses import dataclass

from .exceptions import RateLimited, StoreUnavailable, translate_store_error
from .ports import (
    DiagnosticState,
    IdentityErrorKind,
    IdentityLookup,
    IdentityStore,
    IdentityStoreError,
    ProfileErrorKind,
    ProfileStore,
    ProfileStoreError,
    ThrottleStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class DiagnosticClassifier:
    """Classify an email into one of the four DiagnosticStates."""

    profiles: ProfileStore
    identities: IdentityStore
    lookup: IdentityLookup | None = None

    def classify(self, email: str) -> DiagnosticState:
        """
        Determine which stores hold a record for this email.

        Args:
            email: Normalized email address

        Returns:
            Exactly one DiagnosticState

        Raises:
            StoreUnavailable: Either store could not be read
            RateLimited: Either store reported throttling
        """
        profile_exists = self._profile_exists(email)
        identity_exists = self._identity_exists(email)
        state = DiagnosticState.from_presence(profile_exists, identity_exists)
        logger.info("Diagnosis for %s: %s", email, state.value)
        return state

    def _profile_exists(self, email: str) -> bool:
        try:
            return self.profiles.find_by_email(email) is not None
        except ProfileStoreError as exc:
            logger.error("Profile lookup failed during diagnosis for %s: %s", email, exc)
            raise translate_store_error(exc) from exc

    def _identity_exists(self, email: str) -> bool:
        if self.lookup is not None:
            try:
                return self.lookup.account_exists(email)
            except IdentityStoreError as exc:
                logger.error("Identity lookup failed during diagnosis for %s: %s", email, exc)
                raise translate_store_error(exc) from exc

        try:
            session = self.identities.create_session(email, self._throwaway_password())
        except IdentityStoreError as exc:
            if exc.kind is IdentityErrorKind.INVALID_CREDENTIALS:
                return True
            if exc.kind is IdentityErrorKind.NOT_FOUND:
                return False
            if exc.kind is IdentityErrorKind.RATE_LIMITED:
                raise RateLimited() from exc
            if exc.kind is IdentityErrorKind.UNAVAILABLE:
                logger.error("Identity probe failed during diagnosis for %s: %s", email, exc)
                raise StoreUnavailable() from exc
            logger.warning("Ambiguous identity probe result for %s (%s), assuming it exists", email, exc)
            return True

        # The throwaway credential matched; do not leave the session open.
        logger.warning("Identity probe unexpectedly opened a session for %s", email)
        try:
            self.identities.delete_session(session.account_id, session.id)
        except IdentityStoreError as exc:
            logger.error("Could not close probe session for %s: %s", email, exc)
        return True

    def _throwaway_password(self) -> str:
        return f"probe-{secrets.token_urlsafe(32)}"


@dataclass
class RateLimitProbe:
    """Detect backend throttling with a cheap, non-credential read."""

    profiles: ProfileStore

    def check_throttled(self) -> ThrottleStatus:
        try:
            self.profiles.ping()
        except ProfileStoreError as exc:
            if exc.kind is ProfileErrorKind.RATE_LIMITED:
                logger.warning("Rate-limit probe reports throttling: %s", exc)
                return ThrottleStatus.THROTTLED
            logger.error("Rate-limit probe read failed: %s", exc)
            return ThrottleStatus.STORE_ERROR
        return ThrottleStatus.OK
