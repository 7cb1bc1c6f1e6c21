"""Repository adapters - Database implementations."""

from .postgres import PostgresProfileStore, run_migrations

__all__ = ["PostgresProfileStore", "run_migrations"]
