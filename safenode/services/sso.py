"""
Federated login orchestration.

``start_login`` records a transaction and returns the provider consent URL;
``complete_login`` consumes that transaction, redeems the authorization code,
resolves the local account and mints a session token.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable

from safenode.clients.providers import ProviderRegistry
from safenode.core.errors import (
    InvalidProviderError,
    InvalidRedirectUriError,
    InvalidStateError,
    MissingCallbackParametersError,
    MissingRedirectUriError,
    ProviderAuthorizationError,
    ProviderMismatchError,
)
from safenode.models import Account, ProviderName
from safenode.schemas import OAuthCallbackPayload
from safenode.services.identity_resolver import IdentityResolver
from safenode.services.sessions import SessionIssuer
from safenode.services.transaction_store import TransactionStore
from safenode.utils.urls import is_absolute_http_url, origin_of, with_query_params

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class LoginResult:
    account: Account
    token: str
    redirect_url: str


def parse_provider(value: str) -> ProviderName:
    provider = ProviderName.parse(value)
    if provider is None:
        supported = ", ".join(name.value for name in ProviderName)
        raise InvalidProviderError(
            f"Provider {value} is not supported. Supported: {supported}"
        )
    return provider


class SSOService:
    """Coordinates the transaction store, provider clients and session issuer."""

    def __init__(
        self,
        *,
        registry: ProviderRegistry,
        transactions: TransactionStore,
        resolver: IdentityResolver,
        issuer: SessionIssuer,
        allowed_redirect_origins: Iterable[str] = (),
    ) -> None:
        self._registry = registry
        self._transactions = transactions
        self._resolver = resolver
        self._issuer = issuer
        self._allowed_origins = {origin.lower() for origin in allowed_redirect_origins}

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def _check_redirect_target(self, frontend_redirect_uri: str) -> None:
        if not is_absolute_http_url(frontend_redirect_uri):
            raise InvalidRedirectUriError("redirect_uri must be an absolute http(s) URL")
        if self._allowed_origins and origin_of(frontend_redirect_uri) not in self._allowed_origins:
            raise InvalidRedirectUriError("redirect_uri origin is not allowed")

    def start_login(
        self,
        provider_tag: str,
        frontend_redirect_uri: str | None,
        *,
        callback_uri: str,
    ) -> str:
        """Create a transaction and return the provider authorization URL."""
        provider = parse_provider(provider_tag)
        if not frontend_redirect_uri:
            raise MissingRedirectUriError("redirect_uri query parameter is required")
        self._check_redirect_target(frontend_redirect_uri)
        client = self._registry.get(provider)

        transaction = self._transactions.create(
            provider, frontend_redirect_uri, callback_uri=callback_uri
        )
        logger.info(
            "SSO login initiated provider=%s callback=%s", provider.value, callback_uri
        )
        return client.build_authorization_url(
            callback_uri=callback_uri,
            state=transaction.transaction_id,
            pkce_verifier=transaction.pkce_verifier,
        )

    async def complete_login(
        self, provider_tag: str, payload: OAuthCallbackPayload
    ) -> LoginResult:
        """Finish a login; every failure surfaces as an ``SSOError``."""
        provider = parse_provider(provider_tag)

        if payload.error:
            if payload.state:
                self._transactions.consume(payload.state)
            raise ProviderAuthorizationError(payload.error, payload.error_description)

        if not payload.code or not payload.state:
            raise MissingCallbackParametersError("code and state are required")

        transaction = self._transactions.consume(payload.state)
        if transaction is None:
            logger.warning("Rejected SSO callback with unknown or expired state")
            raise InvalidStateError("Invalid or expired OAuth state")
        if transaction.provider is not provider:
            raise ProviderMismatchError("Provider mismatch in OAuth state")

        client = self._registry.get(provider)
        identity = await client.exchange_code_for_profile(
            code=payload.code,
            callback_uri=transaction.callback_uri,
            pkce_verifier=transaction.pkce_verifier,
            user_hint=payload.user_hint(),
        )
        account = await asyncio.to_thread(self._resolver.resolve, identity)
        token = self._issuer.issue(account)
        redirect_url = with_query_params(
            transaction.frontend_redirect_uri,
            {"token": token, "user_id": account.id},
        )
        return LoginResult(account=account, token=token, redirect_url=redirect_url)


__all__ = ["LoginResult", "SSOService", "parse_provider"]
