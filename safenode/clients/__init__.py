"""Expose storage and identity provider clients."""

from .account_store import AccountStore, SQLiteAccountStore
from .providers import IdentityProvider, ProviderRegistry

__all__ = [
    "AccountStore",
    "IdentityProvider",
    "ProviderRegistry",
    "SQLiteAccountStore",
]
