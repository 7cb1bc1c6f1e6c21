"""
Shared fixtures for adversarial tests.

Provides in-memory stores that record every identity call, so tests can
assert on what an attacker's requests did or did not cause.
"""

import pytest

from src.adapters.memory.stores import InMemoryProfileStore
from src.domain.diagnostics import DiagnosticClassifier, RateLimitProbe
from src.domain.registration import RegistrationOrchestrator
from src.domain.session import SessionController
from tests.helpers import CountingIdentityStore

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture
def profiles() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def identities() -> CountingIdentityStore:
    return CountingIdentityStore()


@pytest.fixture
def session_controller(profiles: InMemoryProfileStore, identities: CountingIdentityStore) -> SessionController:
    """Login controller without native lookup, as deployed without an API key."""
    return SessionController(
        profiles=profiles,
        identities=identities,
        classifier=DiagnosticClassifier(profiles=profiles, identities=identities),
        probe=RateLimitProbe(profiles=profiles),
    )


@pytest.fixture
def registration(profiles: InMemoryProfileStore, identities: CountingIdentityStore) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(profiles=profiles, identities=identities, bcrypt_rounds=4)
