"""
HTTP identity store adapter - Implements IdentityStore and IdentityLookup.

Speaks an Appwrite-compatible REST API through a pooled httpx.Client.
The client is shared by every end user, so it never holds a provider
session: its cookie jar refuses all cookies, and sessions are closed
through the API-key server endpoint by account and session id.

Error Translation:
------------------
Failures are classified from the HTTP status and the structured ``type``
field of the provider's JSON error body, never from message wording:

- transport errors, timeouts, 5xx  -> UNAVAILABLE
- 429 or *_rate_limit_exceeded     -> RATE_LIMITED
- user_invalid_credentials         -> INVALID_CREDENTIALS
- user_not_found / 404             -> NOT_FOUND
- user_already_exists / 409        -> COLLISION
- anything else                    -> OTHER
"""

import json
import logging
from datetime import datetime
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any

import httpx

from src.domain.ports import (
    IdentityAccount,
    IdentityErrorKind,
    IdentityStoreError,
    RecoveryToken,
    Session,
)

logger = logging.getLogger(__name__)

_ERROR_TYPES = {
    "user_invalid_credentials": IdentityErrorKind.INVALID_CREDENTIALS,
    "user_not_found": IdentityErrorKind.NOT_FOUND,
    "user_already_exists": IdentityErrorKind.COLLISION,
    "user_email_already_exists": IdentityErrorKind.COLLISION,
    "general_rate_limit_exceeded": IdentityErrorKind.RATE_LIMITED,
}


def classify_response(response: httpx.Response) -> IdentityErrorKind:
    """Map a non-2xx provider response onto an IdentityErrorKind."""
    if response.status_code == 429:
        return IdentityErrorKind.RATE_LIMITED
    if response.status_code >= 500:
        return IdentityErrorKind.UNAVAILABLE

    try:
        error_type = response.json().get("type", "")
    except ValueError:
        error_type = ""
    if error_type in _ERROR_TYPES:
        return _ERROR_TYPES[error_type]

    if response.status_code == 404:
        return IdentityErrorKind.NOT_FOUND
    if response.status_code == 409:
        return IdentityErrorKind.COLLISION
    return IdentityErrorKind.OTHER


def _refusing_cookie_jar() -> CookieJar:
    """A jar that never stores or sends cookies."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable timestamp from identity provider: %s", value)
        return None


class HttpIdentityStore:
    """
    Implements IdentityStore (and IdentityLookup when an API key is set).

    Uses structural subtyping - no explicit inheritance from Protocol.
    The client is owned by the caller and closed at application shutdown.
    """

    def __init__(self, client: httpx.Client, api_key: str = "") -> None:
        self._client = client
        self._api_key = api_key

    @classmethod
    def connect(
        cls,
        endpoint: str,
        project_id: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> "HttpIdentityStore":
        """Build a store with its own pooled, cookie-less client."""
        client = httpx.Client(
            base_url=endpoint.rstrip("/"),
            headers={"X-Appwrite-Project": project_id, "Content-Type": "application/json"},
            cookies=_refusing_cookie_jar(),
            timeout=timeout,
            transport=transport,
        )
        return cls(client, api_key=api_key)

    def close(self) -> None:
        self._client.close()

    def create_session(self, email: str, password: str) -> Session:
        body = self._request("POST", "/account/sessions/email", json={"email": email, "password": password})
        return Session(
            id=body["$id"],
            account_id=body.get("userId", ""),
            email=email,
            expires_at=_parse_timestamp(body.get("expire")),
        )

    def create_account(self, account_id: str, email: str, password: str, name: str) -> IdentityAccount:
        body = self._request(
            "POST",
            "/account",
            json={"userId": account_id, "email": email, "password": password, "name": name},
        )
        return IdentityAccount(id=body["$id"], email=body.get("email", email), name=body.get("name", name))

    def start_recovery(self, email: str, callback_url: str) -> RecoveryToken:
        body = self._request("POST", "/account/recovery", json={"email": email, "url": callback_url})
        return RecoveryToken(id=body["$id"], expires_at=_parse_timestamp(body.get("expire")))

    def delete_session(self, account_id: str, session_id: str) -> None:
        """Close a session server-side; requires an API key."""
        if not self._api_key:
            raise IdentityStoreError(IdentityErrorKind.OTHER, "Session deletion requires an API key")
        self._request(
            "DELETE",
            f"/users/{account_id}/sessions/{session_id}",
            headers={"X-Appwrite-Key": self._api_key},
        )

    @property
    def supports_lookup(self) -> bool:
        return bool(self._api_key)

    def account_exists(self, email: str) -> bool:
        """
        Server-side existence check; requires an API key.

        Avoids spending a credential attempt on the provider.
        """
        if not self._api_key:
            raise IdentityStoreError(IdentityErrorKind.OTHER, "Existence lookup requires an API key")
        body = self._request(
            "GET",
            "/users",
            params={"queries[]": json.dumps({"method": "equal", "attribute": "email", "values": [email]})},
            headers={"X-Appwrite-Key": self._api_key},
        )
        return int(body.get("total", 0)) > 0

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Identity provider timed out on %s %s", method, path)
            raise IdentityStoreError(IdentityErrorKind.UNAVAILABLE, "Identity provider timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Identity provider unreachable on %s %s: %s", method, path, exc)
            raise IdentityStoreError(IdentityErrorKind.UNAVAILABLE, str(exc)) from exc

        if response.is_success:
            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

        kind = classify_response(response)
        logger.info("Identity provider rejected %s %s: %s (%s)", method, path, response.status_code, kind.value)
        raise IdentityStoreError(kind, f"Identity provider returned {response.status_code}")
