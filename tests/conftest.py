"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory store adapters
- Domain services wired to those stores
- Seeding helpers that create drift directly in one store
"""

from collections.abc import Callable
from typing import Any

import pytest

from src.adapters.memory.stores import InMemoryIdentityStore, InMemoryProfileStore
from src.domain.diagnostics import DiagnosticClassifier, RateLimitProbe
from src.domain.ports import IdentityAccount
from src.domain.profiles import generate_account_id, normalize_profile_fields
from src.domain.registration import RegistrationOrchestrator
from src.domain.repair import ReconciliationService
from src.domain.session import SessionController
from tests.helpers import RECOVERY_URL, individual_fields


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def identity_store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def seed_profile(profile_store: InMemoryProfileStore) -> Callable[..., Any]:
    """Create a profile directly in the store (no identity side effects)."""

    def _seed(email: str, **overrides: Any) -> Any:
        return profile_store.create(normalize_profile_fields(email, individual_fields(**overrides)), None)

    return _seed


@pytest.fixture
def seed_identity(identity_store: InMemoryIdentityStore) -> Callable[..., Any]:
    """Create an identity account directly in the store."""

    def _seed(email: str, password: str, account_id: str | None = None) -> IdentityAccount:
        return identity_store.create_account(account_id or generate_account_id("seed_"), email, password, "Seeded")

    return _seed


@pytest.fixture
def classifier(
    profile_store: InMemoryProfileStore, identity_store: InMemoryIdentityStore
) -> DiagnosticClassifier:
    """Classifier without native lookup: exercises the throwaway-credential probe."""
    return DiagnosticClassifier(profiles=profile_store, identities=identity_store)


@pytest.fixture
def controller(
    profile_store: InMemoryProfileStore,
    identity_store: InMemoryIdentityStore,
    classifier: DiagnosticClassifier,
) -> SessionController:
    return SessionController(
        profiles=profile_store,
        identities=identity_store,
        classifier=classifier,
        probe=RateLimitProbe(profiles=profile_store),
    )


@pytest.fixture
def orchestrator(
    profile_store: InMemoryProfileStore, identity_store: InMemoryIdentityStore
) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(profiles=profile_store, identities=identity_store, bcrypt_rounds=4)


@pytest.fixture
def reconciliation(
    profile_store: InMemoryProfileStore,
    identity_store: InMemoryIdentityStore,
    classifier: DiagnosticClassifier,
) -> ReconciliationService:
    return ReconciliationService(
        profiles=profile_store,
        identities=identity_store,
        classifier=classifier,
        recovery_callback_url=RECOVERY_URL,
    )
