"""Bearer token lifecycle."""

from offline_sync.auth.credentials import AUTH_TOKEN_KEY, CredentialStore, StoredCredentialStore
from offline_sync.auth.token_guard import TokenGuard, TokenRecord

__all__ = [
    "AUTH_TOKEN_KEY",
    "CredentialStore",
    "StoredCredentialStore",
    "TokenGuard",
    "TokenRecord",
]
