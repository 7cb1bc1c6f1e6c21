"""
PostgreSQL profile store adapter - Implements ProfileStore protocol.

This module provides the PostgreSQL implementation of the domain's
profile store port using psycopg3 with raw SQL.

Error Translation:
------------------
Driver and pool exceptions never leave this module. They are mapped onto
the structured ProfileErrorKind the domain reasons about:

- UniqueViolation                              -> DUPLICATE_KEY
- CheckViolation, NotNullViolation, DataError  -> INVALID
- TooManyConnections, PoolTimeout              -> RATE_LIMITED
- any other psycopg.Error                      -> UNAVAILABLE

Pool exhaustion is reported as RATE_LIMITED so that the rate-limit probe
backs off instead of adding load to a saturated database.
"""

import logging
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors, sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from src.domain.ports import (
    AccountType,
    ProfileErrorKind,
    ProfileFields,
    ProfileRecord,
    ProfileStoreError,
)

logger = logging.getLogger(__name__)

# Columns a caller may patch through update(); id, email and timestamps are fixed.
_UPDATABLE_COLUMNS = frozenset(
    {
        "account_type",
        "first_name",
        "last_name",
        "company_name",
        "siret",
        "vat_number",
        "phone",
        "address",
        "postal_code",
        "city",
        "country",
        "status",
        "legacy_password_digest",
        "identity_id",
    }
)


def _translate(exc: Exception) -> ProfileStoreError:
    if isinstance(exc, errors.UniqueViolation):
        return ProfileStoreError(ProfileErrorKind.DUPLICATE_KEY, str(exc))
    if isinstance(exc, (errors.CheckViolation, errors.NotNullViolation, psycopg.DataError)):
        return ProfileStoreError(ProfileErrorKind.INVALID, str(exc))
    if isinstance(exc, (errors.TooManyConnections, PoolTimeout)):
        return ProfileStoreError(ProfileErrorKind.RATE_LIMITED, str(exc))
    return ProfileStoreError(ProfileErrorKind.UNAVAILABLE, str(exc))


def _to_record(row: dict[str, Any]) -> ProfileRecord:
    return ProfileRecord(
        id=str(row["id"]),
        email=row["email"],
        account_type=AccountType(row["account_type"]),
        first_name=row["first_name"],
        last_name=row["last_name"],
        company_name=row["company_name"],
        siret=row["siret"],
        vat_number=row["vat_number"],
        phone=row["phone"],
        address=row["address"],
        postal_code=row["postal_code"],
        city=row["city"],
        country=row["country"],
        status=row["status"],
        legacy_password_digest=row["legacy_password_digest"],
        identity_id=row["identity_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresProfileStore:
    """
    Implements ProfileStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool, timeout: float | None = None) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            timeout: Seconds to wait for a pooled connection (pool default if None)
        """
        self._pool = pool
        self._timeout = timeout

    def find_by_email(self, email: str) -> ProfileRecord | None:
        """
        Fetch the profile with this exact (already normalized) email.

        Returns:
            ProfileRecord, or None when no row matches
        """
        query = "SELECT * FROM profiles WHERE email = %s"
        try:
            with self._pool.connection(timeout=self._timeout) as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(query, (email,))
                row = cursor.fetchone()
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("Profile lookup failed: %s", exc)
            raise _translate(exc) from exc
        return _to_record(row) if row is not None else None

    def create(self, fields: ProfileFields, legacy_password_digest: str | None) -> ProfileRecord:
        """
        Insert a new profile row.

        The UNIQUE constraint on email is the uniqueness guarantee; a
        concurrent insert surfaces as DUPLICATE_KEY, never as a second row.
        """
        query = """
            INSERT INTO profiles (
                email, account_type, first_name, last_name, company_name, siret,
                vat_number, phone, address, postal_code, city, country,
                legacy_password_digest
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING *
        """
        params = (
            fields.email,
            fields.account_type.value,
            fields.first_name,
            fields.last_name,
            fields.company_name,
            fields.siret,
            fields.vat_number,
            fields.phone,
            fields.address,
            fields.postal_code,
            fields.city,
            fields.country,
            legacy_password_digest,
        )
        try:
            with self._pool.connection(timeout=self._timeout) as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
                conn.commit()
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("Profile insert failed for %s: %s", fields.email, exc)
            raise _translate(exc) from exc
        return _to_record(row)

    def update(self, profile_id: str, patch: dict[str, Any]) -> ProfileRecord:
        """
        Apply a partial update and bump updated_at.

        Raises:
            ProfileStoreError: INVALID for unknown or fixed columns,
                NOT_FOUND when no row has this id
        """
        unknown = set(patch) - _UPDATABLE_COLUMNS
        if unknown or not patch:
            raise ProfileStoreError(
                ProfileErrorKind.INVALID, f"Cannot update columns: {sorted(unknown) or 'none given'}"
            )

        columns = sorted(patch)
        query = sql.SQL("UPDATE profiles SET {assignments}, updated_at = NOW() WHERE id = %s RETURNING *").format(
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(column)) for column in columns
            )
        )
        params = [patch[column] for column in columns] + [profile_id]
        try:
            with self._pool.connection(timeout=self._timeout) as conn, conn.cursor(row_factory=dict_row) as cursor:
                cursor.execute(query, params)
                row = cursor.fetchone()
                conn.commit()
        except (psycopg.Error, PoolTimeout) as exc:
            logger.error("Profile update failed for %s: %s", profile_id, exc)
            raise _translate(exc) from exc
        if row is None:
            raise ProfileStoreError(ProfileErrorKind.NOT_FOUND, f"No profile with id {profile_id}")
        return _to_record(row)

    def ping(self) -> None:
        """Cheapest read that still touches the profiles table."""
        try:
            with self._pool.connection(timeout=self._timeout) as conn:
                conn.execute("SELECT 1 FROM profiles LIMIT 1")
        except (psycopg.Error, PoolTimeout) as exc:
            raise _translate(exc) from exc


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
