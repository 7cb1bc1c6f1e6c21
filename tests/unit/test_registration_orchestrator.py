"""
Unit tests for RegistrationOrchestrator domain logic.

Tests verify:
- Profile is created first and never rolled back
- Identity creation success, collision and failure paths
- One retry with a fresh id on non-collision failures
- Legacy password digest and identity link on the profile
"""

from unittest.mock import Mock

import bcrypt
import pytest

from src.domain.diagnostics import DiagnosticClassifier, RateLimitProbe
from src.domain.exceptions import (
    AlreadyRegistered,
    IdentityMissing,
    ProfileValidationError,
    RateLimited,
    StoreUnavailable,
)
from src.domain.ports import (
    Authenticated,
    Deferred,
    DiagnosticState,
    IdentityErrorKind,
    IdentityStoreError,
    ProfileErrorKind,
    ProfileStoreError,
)
from src.domain.registration import (
    REASON_EXISTING_IDENTITY_WRONG_PASSWORD,
    REASON_IDENTITY_CREATION_FAILED,
    REASON_SESSION_CREATION_FAILED,
    RegistrationOrchestrator,
)
from src.domain.session import SessionController
from tests.helpers import CountingIdentityStore, FlakyIdentityStore, individual_fields, professional_fields


class TestRegisterHappyPath:
    def test_returns_authenticated(self, orchestrator, profile_store, identity_store) -> None:
        outcome = orchestrator.register("new@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Authenticated)
        assert outcome.session.email == "new@x.com"
        assert outcome.profile.email == "new@x.com"
        assert profile_store.find_by_email("new@x.com") is not None
        assert identity_store.account_exists("new@x.com")

    def test_email_is_normalized(self, orchestrator, profile_store) -> None:
        orchestrator.register("  New@X.COM ", "pw1-secret", individual_fields())
        assert profile_store.find_by_email("new@x.com") is not None

    def test_profile_is_linked_to_identity(self, orchestrator) -> None:
        outcome = orchestrator.register("new@x.com", "pw1-secret", individual_fields())
        assert outcome.profile.identity_id == outcome.session.account_id

    def test_legacy_digest_matches_password(self, orchestrator) -> None:
        outcome = orchestrator.register("new@x.com", "pw1-secret", individual_fields())
        digest = outcome.profile.legacy_password_digest
        assert digest is not None
        assert bcrypt.checkpw(b"pw1-secret", digest.encode())

    def test_account_id_is_prefixed_and_not_the_email(self, profile_store) -> None:
        identities = FlakyIdentityStore()
        orchestrator = RegistrationOrchestrator(
            profiles=profile_store, identities=identities, account_id_prefix="cust_", bcrypt_rounds=4
        )

        orchestrator.register("new@x.com", "pw1-secret", individual_fields())

        (account_id,) = identities.create_account_calls
        assert account_id.startswith("cust_")
        assert "new" not in account_id

    def test_professional_account_uses_company_name(self, profile_store) -> None:
        identities = Mock(wraps=CountingIdentityStore())
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        orchestrator.register("pro@x.com", "pw1-secret", professional_fields())

        assert identities.create_account.call_args.args[3] == "Analytical Engines SARL"


class TestRegisterPreconditions:
    def test_existing_profile_raises_already_registered(self, orchestrator, seed_profile) -> None:
        seed_profile("a@x.com")
        with pytest.raises(AlreadyRegistered):
            orchestrator.register("A@x.com", "pw1-secret", individual_fields())

    def test_invalid_fields_touch_no_store(self, profile_store) -> None:
        identities = CountingIdentityStore()
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        with pytest.raises(ProfileValidationError):
            orchestrator.register("a@x.com", "pw1-secret", individual_fields(first_name=""))

        assert identities.calls == []
        assert profile_store.find_by_email("a@x.com") is None

    @pytest.mark.parametrize(
        ("kind", "expected"),
        [
            (ProfileErrorKind.UNAVAILABLE, StoreUnavailable),
            (ProfileErrorKind.RATE_LIMITED, RateLimited),
            (ProfileErrorKind.DUPLICATE_KEY, AlreadyRegistered),
        ],
    )
    def test_profile_creation_failure_aborts(self, kind: ProfileErrorKind, expected: type) -> None:
        profiles = Mock()
        profiles.find_by_email.return_value = None
        profiles.create.side_effect = ProfileStoreError(kind)
        identities = CountingIdentityStore()
        orchestrator = RegistrationOrchestrator(profiles=profiles, identities=identities, bcrypt_rounds=4)

        with pytest.raises(expected):
            orchestrator.register("a@x.com", "pw1-secret", individual_fields())

        assert identities.calls == []


class TestRegisterCollision:
    """Tests for an identity that already exists for the email."""

    def test_matching_password_signs_in(self, orchestrator, seed_identity) -> None:
        account = seed_identity("d@x.com", "pw1-secret")

        outcome = orchestrator.register("d@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Authenticated)
        assert outcome.session.account_id == account.id
        assert outcome.profile.identity_id == account.id

    def test_different_password_defers(self, orchestrator, seed_identity, profile_store) -> None:
        seed_identity("d@x.com", "pw-original")

        outcome = orchestrator.register("d@x.com", "pw-other", individual_fields())

        assert isinstance(outcome, Deferred)
        assert outcome.reason == REASON_EXISTING_IDENTITY_WRONG_PASSWORD
        assert outcome.account_created is True
        assert outcome.requires_manual_login is True
        assert profile_store.find_by_email("d@x.com") is not None


class TestRegisterIdentityFailures:
    def test_transient_failure_is_retried_with_new_id(self, profile_store) -> None:
        identities = FlakyIdentityStore([IdentityErrorKind.UNAVAILABLE])
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        outcome = orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Authenticated)
        first, second = identities.create_account_calls
        assert first != second

    def test_second_failure_defers_and_keeps_profile(self, profile_store) -> None:
        identities = FlakyIdentityStore([IdentityErrorKind.UNAVAILABLE, IdentityErrorKind.OTHER])
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        outcome = orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Deferred)
        assert outcome.reason == REASON_IDENTITY_CREATION_FAILED
        assert len(identities.create_account_calls) == 2
        assert profile_store.find_by_email("e@x.com") is not None
        assert outcome.profile.identity_id is None

    def test_failed_registration_leaves_profile_only_drift(self, profile_store) -> None:
        identities = FlakyIdentityStore([IdentityErrorKind.UNAVAILABLE, IdentityErrorKind.OTHER])
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)
        classifier = DiagnosticClassifier(profiles=profile_store, identities=identities)
        controller = SessionController(
            profiles=profile_store,
            identities=identities,
            classifier=classifier,
            probe=RateLimitProbe(profiles=profile_store),
        )

        orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert classifier.classify("e@x.com") is DiagnosticState.PROFILE_ONLY
        assert classifier.classify("e@x.com") is DiagnosticState.PROFILE_ONLY
        with pytest.raises(IdentityMissing):
            controller.login("e@x.com", "pw1-secret")

    def test_rate_limited_is_not_retried(self, profile_store) -> None:
        identities = FlakyIdentityStore([IdentityErrorKind.RATE_LIMITED])
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        outcome = orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Deferred)
        assert outcome.reason == REASON_IDENTITY_CREATION_FAILED
        assert len(identities.create_account_calls) == 1

    def test_collision_on_retry_follows_collision_path(self, profile_store) -> None:
        identities = FlakyIdentityStore([IdentityErrorKind.UNAVAILABLE, IdentityErrorKind.COLLISION])
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        outcome = orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Deferred)
        assert outcome.reason == REASON_EXISTING_IDENTITY_WRONG_PASSWORD

    def test_session_failure_after_creation_defers(self, profile_store) -> None:
        identities = Mock(wraps=CountingIdentityStore())
        identities.create_session.side_effect = IdentityStoreError(IdentityErrorKind.UNAVAILABLE)
        orchestrator = RegistrationOrchestrator(profiles=profile_store, identities=identities, bcrypt_rounds=4)

        outcome = orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Deferred)
        assert outcome.reason == REASON_SESSION_CREATION_FAILED
        assert outcome.profile.identity_id is not None

    def test_link_failure_does_not_fail_registration(self, identity_store) -> None:
        profiles = Mock()
        profiles.find_by_email.return_value = None
        created = Mock(id="p-1", email="e@x.com")
        profiles.create.return_value = created
        profiles.update.side_effect = ProfileStoreError(ProfileErrorKind.UNAVAILABLE)
        orchestrator = RegistrationOrchestrator(profiles=profiles, identities=identity_store, bcrypt_rounds=4)

        outcome = orchestrator.register("e@x.com", "pw1-secret", individual_fields())

        assert isinstance(outcome, Authenticated)
        assert outcome.profile is created
