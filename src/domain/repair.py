"""
Reconciliation service - Explicit repairs toward the BOTH state.

Each repair first takes a diagnostic snapshot and refuses to act when the
snapshot does not match its precondition:

    repair_create_identity   PROFILE_ONLY  -> BOTH
    repair_create_profile    IDENTITY_ONLY -> BOTH
    repair_sync_password     profile present; new identity, or recovery flow

Repairs never create a duplicate profile. An existing identity's
credential is never overwritten directly: without the current credential
the only safe route is the provider's own recovery flow.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from .diagnostics import DiagnosticClassifier
from .exceptions import (
    AlreadyRegistered,
    NoAccount,
    RepairNotApplicable,
    translate_store_error,
)
from .ports import (
    DiagnosticState,
    IdentityAccount,
    IdentityErrorKind,
    IdentityStore,
    IdentityStoreError,
    ProfileRecord,
    ProfileStore,
    ProfileStoreError,
    RequiresRecoveryFlow,
    Session,
)
from .profiles import (
    display_name,
    generate_account_id,
    link_identity,
    normalize_email,
    normalize_profile_fields,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationService:
    """Domain service for diagnosis and caller-invoked repairs."""

    profiles: ProfileStore
    identities: IdentityStore
    classifier: DiagnosticClassifier
    recovery_callback_url: str
    account_id_prefix: str = "user_"

    def diagnose(self, email: str) -> DiagnosticState:
        """Administrative view of an email's presence across both stores."""
        return self.classifier.classify(normalize_email(email))

    def repair_create_identity(self, email: str, password: str) -> IdentityAccount:
        """
        Provision the missing credential for a PROFILE_ONLY email.

        Raises:
            RepairNotApplicable: Diagnosis is not PROFILE_ONLY
            Collision: The identity appeared between diagnosis and creation
            RateLimited, StoreUnavailable: A store could not be used
        """
        normalized_email = normalize_email(email)
        self._require_state(normalized_email, DiagnosticState.PROFILE_ONLY)

        profile = self._find_profile(normalized_email)
        if profile is None:
            raise RepairNotApplicable(DiagnosticState.ABSENT)

        account = self._create_account(normalized_email, password, display_name(profile))
        logger.info("Repair: identity %s created for %s", account.id, normalized_email)
        link_identity(self.profiles, profile, account.id)
        return account

    def repair_create_profile(self, email: str, fields: Mapping[str, str | None]) -> ProfileRecord:
        """
        Create the missing business profile for an IDENTITY_ONLY email.

        Raises:
            RepairNotApplicable: Diagnosis is not IDENTITY_ONLY
            ProfileValidationError: Invalid profile data
            AlreadyRegistered: A profile appeared between diagnosis and creation
            RateLimited, StoreUnavailable: A store could not be used
        """
        profile_fields = normalize_profile_fields(email, fields)
        self._require_state(profile_fields.email, DiagnosticState.IDENTITY_ONLY)

        if self._find_profile(profile_fields.email) is not None:
            raise AlreadyRegistered()

        try:
            profile = self.profiles.create(profile_fields, None)
        except ProfileStoreError as exc:
            logger.error("Repair: profile creation failed for %s: %s", profile_fields.email, exc)
            raise translate_store_error(exc) from exc
        logger.info("Repair: profile %s created for %s", profile.id, profile_fields.email)
        return profile

    def repair_sync_password(self, email: str, password: str) -> Session | RequiresRecoveryFlow:
        """
        Bind the desired password to the customer's identity.

        Creates a fresh identity account with the password and signs in.
        When an account already exists for the email, starts the provider's
        email-based recovery instead and returns RequiresRecoveryFlow.

        Raises:
            NoAccount: No profile exists for the email
            RateLimited, StoreUnavailable: A store could not be used
        """
        normalized_email = normalize_email(email)
        profile = self._find_profile(normalized_email)
        if profile is None:
            raise NoAccount("No profile for this email")

        try:
            account = self.identities.create_account(
                generate_account_id(self.account_id_prefix),
                normalized_email,
                password,
                display_name(profile),
            )
        except IdentityStoreError as exc:
            if exc.kind is not IdentityErrorKind.COLLISION:
                raise translate_store_error(exc) from exc
            return self._start_recovery(normalized_email)

        logger.info("Repair: identity %s created for %s with synchronized password", account.id, normalized_email)
        link_identity(self.profiles, profile, account.id)
        try:
            return self.identities.create_session(normalized_email, password)
        except IdentityStoreError as exc:
            raise translate_store_error(exc) from exc

    def _start_recovery(self, email: str) -> RequiresRecoveryFlow:
        logger.info("Repair: identity exists for %s, starting recovery flow", email)
        try:
            token = self.identities.start_recovery(email, self.recovery_callback_url)
        except IdentityStoreError as exc:
            logger.error("Repair: recovery could not be started for %s: %s", email, exc)
            raise translate_store_error(exc) from exc
        return RequiresRecoveryFlow(token=token)

    def _require_state(self, email: str, expected: DiagnosticState) -> None:
        state = self.classifier.classify(email)
        if state is not expected:
            logger.warning("Repair refused for %s: expected %s, found %s", email, expected.value, state.value)
            raise RepairNotApplicable(state)

    def _find_profile(self, email: str) -> ProfileRecord | None:
        try:
            return self.profiles.find_by_email(email)
        except ProfileStoreError as exc:
            raise translate_store_error(exc) from exc

    def _create_account(self, email: str, password: str, name: str) -> IdentityAccount:
        try:
            return self.identities.create_account(
                generate_account_id(self.account_id_prefix), email, password, name
            )
        except IdentityStoreError as exc:
            raise translate_store_error(exc) from exc
