"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
Store adapters are created once during app lifespan and stored in
app.state; domain services are cheap and built per request.
"""

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from src.config.settings import Settings, get_settings
from src.domain.diagnostics import DiagnosticClassifier, RateLimitProbe
from src.domain.ports import IdentityLookup, IdentityStore, ProfileStore
from src.domain.registration import RegistrationOrchestrator
from src.domain.repair import ReconciliationService
from src.domain.session import SessionController


def get_profile_store(request: Request) -> ProfileStore:
    """
    Get the profile store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.profile_store


def get_identity_store(request: Request) -> IdentityStore:
    return request.app.state.identity_store


def get_identity_lookup(request: Request) -> IdentityLookup | None:
    """Native existence lookup, when the identity adapter supports one."""
    return getattr(request.app.state, "identity_lookup", None)


def get_classifier(
    profiles: ProfileStore = Depends(get_profile_store),
    identities: IdentityStore = Depends(get_identity_store),
    lookup: IdentityLookup | None = Depends(get_identity_lookup),
) -> DiagnosticClassifier:
    return DiagnosticClassifier(profiles=profiles, identities=identities, lookup=lookup)


def get_session_controller(
    profiles: ProfileStore = Depends(get_profile_store),
    identities: IdentityStore = Depends(get_identity_store),
    classifier: DiagnosticClassifier = Depends(get_classifier),
) -> SessionController:
    """
    Create session controller with injected dependencies.

    Wires together both stores, the classifier and the rate-limit probe.
    """
    return SessionController(
        profiles=profiles,
        identities=identities,
        classifier=classifier,
        probe=RateLimitProbe(profiles=profiles),
    )


def get_registration_orchestrator(
    profiles: ProfileStore = Depends(get_profile_store),
    identities: IdentityStore = Depends(get_identity_store),
    settings: Settings = Depends(get_settings),
) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        profiles=profiles,
        identities=identities,
        account_id_prefix=settings.account_id_prefix,
        bcrypt_rounds=settings.bcrypt_cost,
    )


def get_reconciliation_service(
    profiles: ProfileStore = Depends(get_profile_store),
    identities: IdentityStore = Depends(get_identity_store),
    classifier: DiagnosticClassifier = Depends(get_classifier),
    settings: Settings = Depends(get_settings),
) -> ReconciliationService:
    return ReconciliationService(
        profiles=profiles,
        identities=identities,
        classifier=classifier,
        recovery_callback_url=settings.recovery_callback_url,
        account_id_prefix=settings.account_id_prefix,
    )


# HTTP BASIC AUTH security scheme for the administrative endpoints
http_basic = HTTPBasic()


def require_admin(
    credentials: HTTPBasicCredentials = Depends(http_basic),
    settings: Settings = Depends(get_settings),
) -> str:
    """
    Check HTTP BASIC AUTH credentials against the configured administrator.

    Administrative endpoints stay closed while no admin password is
    configured. Comparison is constant-time via secrets.compare_digest.

    Returns:
        The administrator username
    """
    username_ok = secrets.compare_digest(
        credentials.username.encode(), settings.admin_username.encode()
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode(), settings.admin_password.encode()
    )
    if not settings.admin_password or not (username_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid administrator credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username
