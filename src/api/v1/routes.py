"""
API v1 routes.

Defines REST endpoints for login, registration, repair and diagnosis.
Domain errors propagate to the handler in src.api.errors, which renders
them as {"kind", "detail"} with the matching status code.

Handlers are plain functions: the domain calls block on the identity
provider, the database and bcrypt, so FastAPI runs them in its threadpool.
"""

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from src.api.dependencies import (
    get_reconciliation_service,
    get_registration_orchestrator,
    get_session_controller,
    require_admin,
)
from src.api.models import (
    AuthenticatedResponse,
    DeferredResponse,
    DiagnosisResponse,
    ErrorResponse,
    IdentityOut,
    LoginRequest,
    LoginResponse,
    LogoutRequest,
    ProfileOut,
    RecoveryResponse,
    RegisterRequest,
    RepairIdentityRequest,
    RepairPasswordRequest,
    RepairProfileRequest,
    SessionOut,
)
from src.domain.exceptions import ReconciliationError
from src.domain.ports import Authenticated, RequiresRecoveryFlow
from src.domain.profiles import normalize_email
from src.domain.registration import RegistrationOrchestrator
from src.domain.repair import ReconciliationService
from src.domain.session import SessionController

router = APIRouter(tags=["v1"])

_RATE_LIMITED = {429: {"model": ErrorResponse, "description": "Too many attempts"}}
_UNAVAILABLE = {503: {"model": ErrorResponse, "description": "A backing store is unavailable"}}


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Wrong password"},
        404: {"model": ErrorResponse, "description": "No account for this email"},
        409: {
            "model": ErrorResponse,
            "description": "Account out of sync (identity_missing or sync_password_required)",
        },
        422: {"description": "Validation error"},
        **_RATE_LIMITED,
        **_UNAVAILABLE,
    },
    summary="Sign in",
    description="Verify credentials against the identity service. "
    "On failure the account is diagnosed and a categorized error returned.",
)
def login(
    request_data: LoginRequest,
    controller: SessionController = Depends(get_session_controller),
) -> LoginResponse:
    """
    Sign in and merge the business profile.

    - **email**: Account email
    - **password**: Account password

    `profile` is null when the identity has no business profile yet.
    """
    session = controller.login(request_data.email, request_data.password)
    try:
        profile = controller.load_profile(session.email)
    except ReconciliationError:
        controller.discard(session)
        raise
    return LoginResponse(
        session=SessionOut.from_domain(session),
        profile=ProfileOut.from_domain(profile) if profile is not None else None,
    )


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={**_UNAVAILABLE},
    summary="Sign out",
)
def logout(
    request_data: LogoutRequest,
    controller: SessionController = Depends(get_session_controller),
) -> Response:
    controller.logout(request_data.account_id, request_data.session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/register",
    response_model=AuthenticatedResponse | DeferredResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        202: {"model": DeferredResponse, "description": "Profile created, sign-in deferred"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"description": "Validation error"},
        **_RATE_LIMITED,
        **_UNAVAILABLE,
    },
    summary="Register a new customer",
    description="Create the business profile, then the identity account, then sign in. "
    "When the identity side cannot be completed the profile is kept and 202 is returned.",
)
def register(
    request_data: RegisterRequest,
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> AuthenticatedResponse | JSONResponse:
    """
    Register a customer.

    - **email**, **password**: Credentials for the identity service
    - **account_type**: `individual` (first/last name required) or
      `professional` (company name required)
    """
    outcome = orchestrator.register(
        request_data.email, request_data.password, request_data.as_mapping()
    )
    if isinstance(outcome, Authenticated):
        return AuthenticatedResponse(
            session=SessionOut.from_domain(outcome.session),
            profile=ProfileOut.from_domain(outcome.profile),
        )
    deferred = DeferredResponse(
        account_created=outcome.account_created,
        requires_manual_login=outcome.requires_manual_login,
        reason=outcome.reason,
        profile=ProfileOut.from_domain(outcome.profile),
    )
    return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=deferred.model_dump(mode="json"))


@router.post(
    "/repair/identity",
    response_model=IdentityOut,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Repair not applicable or identity collision"},
        **_RATE_LIMITED,
        **_UNAVAILABLE,
    },
    summary="Create the missing identity for an existing profile",
)
def repair_identity(
    request_data: RepairIdentityRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> IdentityOut:
    account = service.repair_create_identity(request_data.email, request_data.password)
    return IdentityOut(id=account.id, email=account.email, name=account.name)


@router.post(
    "/repair/profile",
    response_model=ProfileOut,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Repair not applicable or already registered"},
        422: {"description": "Validation error"},
        **_RATE_LIMITED,
        **_UNAVAILABLE,
    },
    summary="Create the missing profile for an existing identity",
)
def repair_profile(
    request_data: RepairProfileRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> ProfileOut:
    profile = service.repair_create_profile(request_data.email, request_data.as_mapping())
    return ProfileOut.from_domain(profile)


@router.post(
    "/repair/password",
    response_model=SessionOut | RecoveryResponse,
    responses={
        202: {"model": RecoveryResponse, "description": "Recovery email sent"},
        404: {"model": ErrorResponse, "description": "No profile for this email"},
        **_RATE_LIMITED,
        **_UNAVAILABLE,
    },
    summary="Synchronize the password with the identity service",
    description="Binds the password to a fresh identity account and signs in, "
    "or starts the identity service's email recovery when an account already exists.",
)
def repair_password(
    request_data: RepairPasswordRequest,
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> SessionOut | JSONResponse:
    outcome = service.repair_sync_password(request_data.email, request_data.password)
    if isinstance(outcome, RequiresRecoveryFlow):
        recovery = RecoveryResponse(recovery_id=outcome.token.id, expires_at=outcome.token.expires_at)
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=recovery.model_dump(mode="json"))
    return SessionOut.from_domain(outcome)


@router.get(
    "/diagnose",
    response_model=DiagnosisResponse,
    responses={
        401: {"description": "Administrator credentials required"},
        **_RATE_LIMITED,
        **_UNAVAILABLE,
    },
    summary="Diagnose an email across both stores",
    description="Administrative: reports ABSENT, PROFILE_ONLY, IDENTITY_ONLY or BOTH. "
    "Without a native lookup this spends one failed credential attempt.",
)
def diagnose(
    email: str = Query(..., min_length=3),
    _admin: str = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> DiagnosisResponse:
    return DiagnosisResponse(email=normalize_email(email), state=service.diagnose(email))
