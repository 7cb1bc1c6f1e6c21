"""
Domain layer - Pure business logic with zero framework imports.

This package contains the identity reconciliation logic: diagnosis of
drift between the business-profile store and the external identity
service, the login and registration use cases built on it, and the
explicit repairs. It defines its own port interfaces for infrastructure
abstraction, ensuring true hexagonal architecture decoupling.
"""

from .diagnostics import DiagnosticClassifier, RateLimitProbe
from .exceptions import (
    AlreadyRegistered,
    Collision,
    ErrorKind,
    IdentityMissing,
    NoAccount,
    ProfileValidationError,
    RateLimited,
    ReconciliationError,
    RepairNotApplicable,
    StoreUnavailable,
    SyncPasswordRequired,
    WrongPassword,
)
from .ports import (
    AccountType,
    Authenticated,
    Deferred,
    DiagnosticState,
    IdentityLookup,
    IdentityStore,
    ProfileStore,
    RequiresRecoveryFlow,
    ThrottleStatus,
)
from .registration import RegistrationOrchestrator
from .repair import ReconciliationService
from .session import SessionController

__all__ = [
    "AccountType",
    "AlreadyRegistered",
    "Authenticated",
    "Collision",
    "Deferred",
    "DiagnosticClassifier",
    "DiagnosticState",
    "ErrorKind",
    "IdentityLookup",
    "IdentityMissing",
    "IdentityStore",
    "NoAccount",
    "ProfileStore",
    "ProfileValidationError",
    "RateLimitProbe",
    "RateLimited",
    "ReconciliationError",
    "ReconciliationService",
    "RegistrationOrchestrator",
    "RepairNotApplicable",
    "RequiresRecoveryFlow",
    "SessionController",
    "StoreUnavailable",
    "SyncPasswordRequired",
    "ThrottleStatus",
    "WrongPassword",
]
