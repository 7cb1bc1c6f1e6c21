"""
Profile helpers shared by registration and repair.

Email normalization, conditional field validation, display-name
derivation and identity account id generation.
"""

import logging
import re
import secrets
from collections.abc import Mapping

import bcrypt

from .exceptions import ProfileValidationError
from .ports import AccountType, ProfileFields, ProfileRecord, ProfileStore, ProfileStoreError

logger = logging.getLogger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SIRET_PATTERN = re.compile(r"^\d{14}$")

# Identity providers commonly cap ids at 36 chars of [a-zA-Z0-9._-]
_MAX_ACCOUNT_ID_LENGTH = 36


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase. This is the join key between
    ProfileStore and IdentityStore, so every entry point must use it.

    The profiles table enforces the same folding with a CHECK constraint,
    so profiles imported with mixed-case emails must be folded first
    (see migrations/001_create_profiles.sql).
    """
    return email.strip().lower()


def normalize_profile_fields(email: str, raw: Mapping[str, str | None]) -> ProfileFields:
    """
    Validate and normalize user-supplied profile data.

    Name fields are kept only for individual accounts and company fields
    only for professional accounts; the others are blanked.

    Raises:
        ProfileValidationError: On a malformed email, unknown account type,
            or a missing field required by the account type
    """
    normalized_email = normalize_email(email)
    if not _EMAIL_PATTERN.match(normalized_email):
        raise ProfileValidationError("Invalid email format")

    def value(name: str) -> str:
        return (raw.get(name) or "").strip()

    try:
        account_type = AccountType(value("account_type") or AccountType.INDIVIDUAL.value)
    except ValueError:
        raise ProfileValidationError("Unknown account type") from None

    first_name = last_name = company_name = siret = vat_number = ""
    if account_type is AccountType.INDIVIDUAL:
        first_name = value("first_name")
        last_name = value("last_name")
        if not first_name or not last_name:
            raise ProfileValidationError("First and last name are required for individual accounts")
    else:
        company_name = value("company_name")
        siret = value("siret").replace(" ", "")
        vat_number = value("vat_number").replace(" ", "").upper()
        if not company_name:
            raise ProfileValidationError("Company name is required for professional accounts")
        if siret and not _SIRET_PATTERN.match(siret):
            raise ProfileValidationError("SIRET must be 14 digits")

    return ProfileFields(
        email=normalized_email,
        account_type=account_type,
        first_name=first_name,
        last_name=last_name,
        company_name=company_name,
        siret=siret,
        vat_number=vat_number,
        phone=value("phone"),
        address=value("address"),
        postal_code=value("postal_code"),
        city=value("city"),
        country=value("country") or "France",
    )


def display_name(profile: ProfileFields | ProfileRecord) -> str:
    """Name shown by the identity provider, derived from the business profile."""
    if profile.account_type == AccountType.PROFESSIONAL and profile.company_name:
        return profile.company_name
    full_name = f"{profile.first_name} {profile.last_name}".strip()
    return full_name or profile.email.split("@", 1)[0]


def generate_account_id(prefix: str = "user_") -> str:
    """
    Generate a fresh random identity account id.

    Never derived from the email. Uses secrets for unpredictability.
    """
    return f"{prefix}{secrets.token_hex(12)}"[:_MAX_ACCOUNT_ID_LENGTH]


def hash_legacy_password(password: str, rounds: int = 10) -> str:
    """
    bcrypt digest stored on the profile for the record only.

    The identity service never consults it. bcrypt only reads the first
    72 bytes, so longer input is cut there explicitly.
    """
    return bcrypt.hashpw(password.encode()[:72], bcrypt.gensalt(rounds=rounds)).decode()


def link_identity(profiles: ProfileStore, profile: ProfileRecord, account_id: str) -> ProfileRecord:
    """
    Record the identity account id on the profile (best effort).

    The link lets later repairs recognise an already-provisioned account
    instead of re-probing by email. A failed write is logged and the
    unlinked profile returned; the identity itself already exists.
    """
    try:
        linked = profiles.update(profile.id, {"identity_id": account_id})
    except ProfileStoreError as exc:
        logger.error("Could not link identity %s to profile %s: %s", account_id, profile.id, exc)
        return profile
    logger.info("Linked identity %s to profile %s", account_id, profile.id)
    return linked
