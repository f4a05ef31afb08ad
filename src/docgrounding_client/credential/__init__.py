"""Client credential storage module."""

from .store import Credential, CredentialStore, normalize_pem

__all__ = ["Credential", "CredentialStore", "normalize_pem"]
