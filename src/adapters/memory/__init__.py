"""In-memory adapters - Process-local store implementations."""

from .stores import InMemoryIdentityStore, InMemoryProfileStore

__all__ = ["InMemoryIdentityStore", "InMemoryProfileStore"]
