"""
Common OAuth2 authorization-code client shared by every identity provider.

Each provider subclass supplies its endpoints and scopes and the rule that
turns its profile payload into a :class:`NormalizedIdentity`. Providers that
need more than one profile call, or no user-info endpoint at all, override
:meth:`IdentityProvider.fetch_profile`.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode

import httpx

from safenode.core.errors import (
    MissingEmailError,
    NoAccessTokenError,
    TokenExchangeError,
    UserInfoFetchError,
)
from safenode.models import NormalizedIdentity, ProviderName, TokenSet

logger = logging.getLogger(__name__)

_BODY_PREVIEW_LIMIT = 500


def build_code_challenge(verifier: str) -> str:
    """Return the S256 PKCE challenge (unpadded base64url SHA-256) for ``verifier``."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def require_email(provider: ProviderName, value: Any) -> str:
    """Return ``value`` when it is a usable address, else fail the login."""
    if not isinstance(value, str) or "@" not in value:
        raise MissingEmailError(
            f"{provider.value} did not return an email address for this account"
        )
    return value


@dataclass(frozen=True)
class ProviderEndpoints:
    """Resolved protocol parameters for one provider."""

    authorize_url: str
    token_url: str
    userinfo_url: Optional[str]
    scopes: Tuple[str, ...]


class IdentityProvider(ABC):
    """Build authorization URLs and turn authorization codes into identities."""

    name: ProviderName
    display_name: str
    AUTHORIZE_URL: str
    TOKEN_URL: str
    USERINFO_URL: Optional[str] = None
    SCOPES: Tuple[str, ...] = ()

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._transport = transport

    @property
    def endpoints(self) -> ProviderEndpoints:
        return ProviderEndpoints(
            authorize_url=self.AUTHORIZE_URL,
            token_url=self.TOKEN_URL,
            userinfo_url=self.USERINFO_URL,
            scopes=self.SCOPES,
        )

    def authorization_params(self) -> Dict[str, str]:
        """Provider-specific query parameters added to the consent URL."""
        return {}

    def client_secret(self) -> str:
        return self._client_secret or ""

    def build_authorization_url(
        self, *, callback_uri: str, state: str, pkce_verifier: str
    ) -> str:
        """Construct the provider consent URL for one transaction."""
        endpoints = self.endpoints
        params = {
            "client_id": self.client_id,
            "redirect_uri": callback_uri,
            "response_type": "code",
            "scope": " ".join(endpoints.scopes),
            "state": state,
            "code_challenge": build_code_challenge(pkce_verifier),
            "code_challenge_method": "S256",
        }
        params.update(self.authorization_params())
        return f"{endpoints.authorize_url}?{urlencode(params)}"

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def exchange_code_for_profile(
        self,
        *,
        code: str,
        callback_uri: str,
        pkce_verifier: str,
        user_hint: Optional[Dict[str, Any]] = None,
    ) -> NormalizedIdentity:
        """Redeem ``code`` at the token endpoint and normalize the user's profile."""
        async with self._http_client() as client:
            tokens = await self.exchange_token(
                client,
                code=code,
                callback_uri=callback_uri,
                pkce_verifier=pkce_verifier,
            )
            profile = await self.fetch_profile(client, tokens, user_hint=user_hint)
        return self.normalize(profile)

    async def exchange_token(
        self,
        client: httpx.AsyncClient,
        *,
        code: str,
        callback_uri: str,
        pkce_verifier: str,
    ) -> TokenSet:
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret(),
            "code": code,
            "redirect_uri": callback_uri,
            "grant_type": "authorization_code",
            "code_verifier": pkce_verifier,
        }
        try:
            response = await client.post(
                self.endpoints.token_url,
                data=payload,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            logger.warning("Token exchange with %s failed: %s", self.name.value, exc)
            raise TokenExchangeError(f"Token exchange failed: {exc}") from exc

        if not response.is_success:
            body = response.text[:_BODY_PREVIEW_LIMIT]
            logger.warning(
                "Token exchange with %s returned %s: %s",
                self.name.value,
                response.status_code,
                body,
            )
            raise TokenExchangeError(
                f"Token exchange failed: {response.status_code} {body}",
                upstream_status=response.status_code,
                upstream_body=body,
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise TokenExchangeError(
                "Token endpoint returned a non-JSON body.",
                upstream_status=response.status_code,
                upstream_body=response.text[:_BODY_PREVIEW_LIMIT],
            ) from exc

        tokens = TokenSet(
            access_token=token_payload.get("access_token"),
            id_token=token_payload.get("id_token"),
            raw=token_payload,
        )
        self.check_tokens(tokens)
        return tokens

    def check_tokens(self, tokens: TokenSet) -> None:
        if not tokens.access_token:
            raise NoAccessTokenError(
                "No access token received",
                upstream_body=str(tokens.raw.get("error", "")) or None,
            )

    async def fetch_profile(
        self,
        client: httpx.AsyncClient,
        tokens: TokenSet,
        *,
        user_hint: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._get_json(client, self.endpoints.userinfo_url or "", tokens)

    async def _get_json(
        self, client: httpx.AsyncClient, url: str, tokens: TokenSet
    ) -> Any:
        """GET a profile resource with the access token as bearer credential."""
        try:
            response = await client.get(
                url,
                headers={
                    "Authorization": f"Bearer {tokens.access_token}",
                    "Accept": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            logger.warning("Profile fetch from %s failed: %s", self.name.value, exc)
            raise UserInfoFetchError(f"Failed to fetch user info: {exc}") from exc

        if not response.is_success:
            logger.warning(
                "Profile fetch from %s returned %s", self.name.value, response.status_code
            )
            raise UserInfoFetchError(
                f"Failed to fetch user info: {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=response.text[:_BODY_PREVIEW_LIMIT],
            )
        try:
            return response.json()
        except ValueError as exc:
            raise UserInfoFetchError(
                "User info endpoint returned a non-JSON body.",
                upstream_status=response.status_code,
            ) from exc

    @abstractmethod
    def normalize(self, profile: Dict[str, Any]) -> NormalizedIdentity:
        """Map the provider's profile payload to a normalized identity."""


__all__ = [
    "IdentityProvider",
    "ProviderEndpoints",
    "build_code_challenge",
    "require_email",
]
