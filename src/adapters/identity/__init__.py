"""Identity adapters - External identity service implementations."""

from .http import HttpIdentityStore, classify_response

__all__ = ["HttpIdentityStore", "classify_response"]
