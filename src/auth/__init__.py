"""Credential lifecycle for delegated calendar access."""

from .credentials import AuthorizedCredential, LoadResult, LoadStatus
from .refresh import ClientRegistration, CredentialProvider, TokenRefresher
from .store import CredentialStore

__all__ = [
    "AuthorizedCredential",
    "ClientRegistration",
    "CredentialProvider",
    "CredentialStore",
    "LoadResult",
    "LoadStatus",
    "TokenRefresher",
]
