"""
In-memory store adapters - Implement ProfileStore, IdentityStore and IdentityLookup.

For local development (USE_IN_MEMORY_STORES=true) and flow tests.
State lives for the lifetime of the process; nothing is persisted.
"""

import logging
import secrets
import threading
import uuid
from dataclasses import asdict, replace
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt

from src.domain.ports import (
    AccountType,
    IdentityAccount,
    IdentityErrorKind,
    IdentityStoreError,
    ProfileErrorKind,
    ProfileFields,
    ProfileRecord,
    ProfileStoreError,
    RecoveryToken,
    Session,
)

logger = logging.getLogger(__name__)

_FIXED_COLUMNS = frozenset({"id", "email", "created_at", "updated_at"})


class InMemoryProfileStore:
    """
    Implements ProfileStore protocol with a dict keyed by email.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_email: dict[str, ProfileRecord] = {}

    def find_by_email(self, email: str) -> ProfileRecord | None:
        with self._lock:
            profile = self._by_email.get(email)
            return replace(profile) if profile is not None else None

    def create(self, fields: ProfileFields, legacy_password_digest: str | None) -> ProfileRecord:
        now = datetime.now(timezone.utc)
        profile = ProfileRecord(
            id=str(uuid.uuid4()),
            legacy_password_digest=legacy_password_digest,
            created_at=now,
            updated_at=now,
            **asdict(fields),
        )
        with self._lock:
            if fields.email in self._by_email:
                raise ProfileStoreError(ProfileErrorKind.DUPLICATE_KEY, f"Profile exists for {fields.email}")
            self._by_email[fields.email] = profile
        logger.debug("In-memory profile %s created", profile.id)
        return replace(profile)

    def update(self, profile_id: str, patch: dict[str, Any]) -> ProfileRecord:
        if set(patch) & _FIXED_COLUMNS:
            raise ProfileStoreError(ProfileErrorKind.INVALID, "Cannot update fixed columns")
        if "account_type" in patch:
            patch = {**patch, "account_type": AccountType(patch["account_type"])}
        with self._lock:
            for email, profile in self._by_email.items():
                if profile.id == profile_id:
                    try:
                        updated = replace(profile, updated_at=datetime.now(timezone.utc), **patch)
                    except TypeError as exc:
                        raise ProfileStoreError(ProfileErrorKind.INVALID, str(exc)) from exc
                    self._by_email[email] = updated
                    return replace(updated)
        raise ProfileStoreError(ProfileErrorKind.NOT_FOUND, f"No profile with id {profile_id}")

    def ping(self) -> None:
        return None


class InMemoryIdentityStore:
    """
    Implements IdentityStore and IdentityLookup protocols.

    Enforces one account per email, like hosted identity providers do.
    Passwords are held as bcrypt digests, never in clear.
    """

    def __init__(self, bcrypt_rounds: int = 4, session_ttl: timedelta = timedelta(days=1)) -> None:
        self._lock = threading.Lock()
        self._bcrypt_rounds = bcrypt_rounds
        self._session_ttl = session_ttl
        self._accounts: dict[str, IdentityAccount] = {}
        self._digests: dict[str, bytes] = {}
        self._ids_by_email: dict[str, str] = {}
        self._sessions: dict[str, Session] = {}
        self.recoveries: list[tuple[str, str]] = []

    def create_session(self, email: str, password: str) -> Session:
        with self._lock:
            account_id = self._ids_by_email.get(email)
            if account_id is None:
                raise IdentityStoreError(IdentityErrorKind.NOT_FOUND, "user_not_found")
            if not bcrypt.checkpw(password.encode()[:72], self._digests[account_id]):
                raise IdentityStoreError(IdentityErrorKind.INVALID_CREDENTIALS, "user_invalid_credentials")
            session = Session(
                id=secrets.token_hex(16),
                account_id=account_id,
                email=email,
                expires_at=datetime.now(timezone.utc) + self._session_ttl,
            )
            self._sessions[session.id] = session
            return session

    def create_account(self, account_id: str, email: str, password: str, name: str) -> IdentityAccount:
        digest = bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt(rounds=self._bcrypt_rounds))
        with self._lock:
            if account_id in self._accounts or email in self._ids_by_email:
                raise IdentityStoreError(IdentityErrorKind.COLLISION, "user_already_exists")
            account = IdentityAccount(id=account_id, email=email, name=name)
            self._accounts[account_id] = account
            self._digests[account_id] = digest
            self._ids_by_email[email] = account_id
        logger.debug("In-memory identity %s created", account_id)
        return account

    def start_recovery(self, email: str, callback_url: str) -> RecoveryToken:
        with self._lock:
            if email not in self._ids_by_email:
                raise IdentityStoreError(IdentityErrorKind.NOT_FOUND, "user_not_found")
            self.recoveries.append((email, callback_url))
        logger.info("In-memory recovery started for %s -> %s", email, callback_url)
        return RecoveryToken(id=secrets.token_hex(16), expires_at=datetime.now(timezone.utc) + timedelta(hours=1))

    def delete_session(self, account_id: str, session_id: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.account_id != account_id:
                raise IdentityStoreError(IdentityErrorKind.NOT_FOUND, "session_not_found")
            del self._sessions[session_id]

    def account_exists(self, email: str) -> bool:
        with self._lock:
            return email in self._ids_by_email
