"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import asyncio
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from safenode.clients import AccountStore, ProviderRegistry, SQLiteAccountStore
from safenode.core.config import get_settings
from safenode.models import Account
from safenode.services import (
    IdentityResolver,
    InMemoryTransactionStore,
    SSOService,
    SessionIssuer,
    SessionValidator,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_account_store() -> SQLiteAccountStore:
    """Provide the shared account store."""
    return SQLiteAccountStore(_settings().database_path)


@lru_cache()
def get_transaction_store() -> InMemoryTransactionStore:
    """Provide the process-wide OAuth transaction store."""
    return InMemoryTransactionStore(_settings().oauth.state_ttl_seconds)


@lru_cache()
def get_provider_registry() -> ProviderRegistry:
    """Provide the registry of configured identity providers."""
    return ProviderRegistry(_settings())


@lru_cache()
def get_session_issuer() -> SessionIssuer:
    """Provide the session token issuer."""
    return SessionIssuer(_settings().session)


def threaded_lookup(store: AccountStore) -> Callable[[str], Awaitable[Optional[Account]]]:
    """Account lookup that runs the blocking store read in a worker thread."""

    async def lookup(account_id: str) -> Optional[Account]:
        return await asyncio.to_thread(store.find_by_id, account_id)

    return lookup


@lru_cache()
def get_session_validator() -> SessionValidator:
    """Provide the session validator bound to the account store."""
    return SessionValidator(
        _settings().session,
        account_lookup=threaded_lookup(get_account_store()),
    )


@lru_cache()
def get_identity_resolver() -> IdentityResolver:
    return IdentityResolver(get_account_store())


@lru_cache()
def get_sso_service() -> SSOService:
    """Provide the SSO orchestration service."""
    settings = _settings()
    return SSOService(
        registry=get_provider_registry(),
        transactions=get_transaction_store(),
        resolver=get_identity_resolver(),
        issuer=get_session_issuer(),
        allowed_redirect_origins=settings.oauth.allowed_redirect_origins,
    )


__all__ = [
    "get_account_store",
    "get_identity_resolver",
    "get_provider_registry",
    "get_session_issuer",
    "get_session_validator",
    "get_sso_service",
    "get_transaction_store",
    "threaded_lookup",
]
