"""Domain models shared by the OAuth and session layers."""

from .account import Account
from .oauth import NormalizedIdentity, OAuthTransaction, ProviderName, TokenSet

__all__ = [
    "Account",
    "NormalizedIdentity",
    "OAuthTransaction",
    "ProviderName",
    "TokenSet",
]
