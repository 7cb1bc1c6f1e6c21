"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field

from src.domain.ports import AccountType, DiagnosticState, ProfileRecord, Session


class ProfileFieldsIn(BaseModel):
    """Business profile fields; required ones depend on account_type."""

    account_type: AccountType = AccountType.INDIVIDUAL
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    company_name: str | None = Field(None, max_length=200, description="Raison sociale")
    siret: str | None = Field(None, max_length=20)
    vat_number: str | None = Field(None, max_length=20)
    phone: str | None = Field(None, max_length=30)
    address: str | None = Field(None, max_length=300)
    postal_code: str | None = Field(None, max_length=20)
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)

    def as_mapping(self) -> dict[str, str | None]:
        return self.model_dump(mode="json", include=set(ProfileFieldsIn.model_fields))


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(ProfileFieldsIn):
    """Request model for customer registration."""

    email: EmailStr
    password: str = Field(..., min_length=8, description="User password (min 8 characters)")


class RepairIdentityRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class RepairProfileRequest(ProfileFieldsIn):
    email: EmailStr


class RepairPasswordRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)


class LogoutRequest(BaseModel):
    account_id: str = Field(..., min_length=1)
    session_id: str = Field(..., min_length=1)


class SessionOut(BaseModel):
    id: str
    account_id: str
    email: str
    expires_at: datetime | None = None

    @classmethod
    def from_domain(cls, session: Session) -> "SessionOut":
        return cls(
            id=session.id,
            account_id=session.account_id,
            email=session.email,
            expires_at=session.expires_at,
        )


class ProfileOut(BaseModel):
    """Business profile as exposed to the UI (no credential digest)."""

    id: str
    email: str
    account_type: AccountType
    first_name: str
    last_name: str
    company_name: str
    siret: str
    vat_number: str
    phone: str
    address: str
    postal_code: str
    city: str
    country: str
    status: str
    identity_linked: bool

    @classmethod
    def from_domain(cls, profile: ProfileRecord) -> "ProfileOut":
        return cls(
            id=profile.id,
            email=profile.email,
            account_type=profile.account_type,
            first_name=profile.first_name,
            last_name=profile.last_name,
            company_name=profile.company_name,
            siret=profile.siret,
            vat_number=profile.vat_number,
            phone=profile.phone,
            address=profile.address,
            postal_code=profile.postal_code,
            city=profile.city,
            country=profile.country,
            status=profile.status,
            identity_linked=profile.identity_id is not None,
        )


class LoginResponse(BaseModel):
    session: SessionOut
    profile: ProfileOut | None = None


class AuthenticatedResponse(BaseModel):
    status: Literal["authenticated"] = "authenticated"
    session: SessionOut
    profile: ProfileOut


class DeferredResponse(BaseModel):
    status: Literal["deferred"] = "deferred"
    account_created: bool
    requires_manual_login: bool
    reason: str
    profile: ProfileOut


class IdentityOut(BaseModel):
    id: str
    email: str
    name: str


class RecoveryResponse(BaseModel):
    status: Literal["recovery_started"] = "recovery_started"
    recovery_id: str
    expires_at: datetime | None = None


class DiagnosisResponse(BaseModel):
    email: str
    state: DiagnosticState


class ErrorResponse(BaseModel):
    """Standard error response model."""

    kind: str
    detail: str
