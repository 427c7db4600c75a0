"""Credential persistence."""

from museick.infrastructure.credentials.credential_store import (
    FileCredentialStore,
    InMemoryCredentialStore,
)

__all__ = ["FileCredentialStore", "InMemoryCredentialStore"]
