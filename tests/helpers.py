"""
Test helpers - profile field factories and store doubles.
"""

from typing import Any

from src.adapters.memory.stores import InMemoryIdentityStore, InMemoryProfileStore
from src.domain.ports import (
    IdentityAccount,
    IdentityErrorKind,
    IdentityStoreError,
    ProfileErrorKind,
    ProfileStoreError,
)

RECOVERY_URL = "http://localhost:3000/reset-password"


def individual_fields(**overrides: Any) -> dict[str, Any]:
    """Valid individual-account profile fields."""
    fields = {
        "account_type": "individual",
        "first_name": "Ada",
        "last_name": "Lovelace",
        "phone": "0601020304",
        "address": "1 rue de la Paix",
        "postal_code": "75002",
        "city": "Paris",
    }
    fields.update(overrides)
    return fields


def professional_fields(**overrides: Any) -> dict[str, Any]:
    """Valid professional-account profile fields."""
    fields = {
        "account_type": "professional",
        "company_name": "Analytical Engines SARL",
        "siret": "73282932000074",
        "vat_number": "fr40732829320",
    }
    fields.update(overrides)
    return fields


class ThrottledProfileStore(InMemoryProfileStore):
    """Profile store whose cheap reads report throttling."""

    def ping(self) -> None:
        raise ProfileStoreError(ProfileErrorKind.RATE_LIMITED, "Too many requests")


class UnreachableProfileStore(InMemoryProfileStore):
    """Profile store that cannot be reached at all."""

    def ping(self) -> None:
        raise ProfileStoreError(ProfileErrorKind.UNAVAILABLE, "connection refused")

    def find_by_email(self, email: str) -> None:
        raise ProfileStoreError(ProfileErrorKind.UNAVAILABLE, "connection refused")


class FlakyIdentityStore(InMemoryIdentityStore):
    """Identity store whose next create_account calls fail with the queued kinds."""

    def __init__(self, failures: list[IdentityErrorKind] | None = None) -> None:
        super().__init__()
        self.failures = list(failures or [])
        self.create_account_calls: list[str] = []

    def create_account(self, account_id: str, email: str, password: str, name: str) -> IdentityAccount:
        self.create_account_calls.append(account_id)
        if self.failures:
            raise IdentityStoreError(self.failures.pop(0), "injected failure")
        return super().create_account(account_id, email, password, name)


class CountingIdentityStore(InMemoryIdentityStore):
    """Identity store that records every call by method name."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    def create_session(self, email: str, password: str) -> Any:
        self.calls.append("create_session")
        return super().create_session(email, password)

    def create_account(self, account_id: str, email: str, password: str, name: str) -> IdentityAccount:
        self.calls.append("create_account")
        return super().create_account(account_id, email, password, name)

    def start_recovery(self, email: str, callback_url: str) -> Any:
        self.calls.append("start_recovery")
        return super().start_recovery(email, callback_url)

    def writes(self) -> list[str]:
        return [call for call in self.calls if call in ("create_account", "start_recovery")]
