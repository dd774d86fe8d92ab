"""
Sign in with Apple provider.

Apple differs from the other providers in three ways: the client secret is
a short-lived ES256 JWT signed with the team's key, the callback arrives as
a form POST, and there is no user-info endpoint. The profile is read from
the ``id_token`` after verifying it against Apple's published keys, plus the
``user`` JSON Apple posts only on the first consent.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

import httpx
import jwt

from safenode.core.errors import IdentityTokenError, MissingEmailError
from safenode.models import NormalizedIdentity, ProviderName, TokenSet

from .base import IdentityProvider, require_email

APPLE_ISSUER = "https://appleid.apple.com"
CLIENT_SECRET_LIFETIME_SECONDS = 300


class AppleProvider(IdentityProvider):
    name = ProviderName.APPLE
    display_name = "Apple"
    AUTHORIZE_URL = "https://appleid.apple.com/auth/authorize"
    TOKEN_URL = "https://appleid.apple.com/auth/token"
    KEYS_URL = "https://appleid.apple.com/auth/keys"
    SCOPES = ("name", "email")

    def __init__(
        self,
        *,
        client_id: str,
        team_id: str,
        key_id: str,
        private_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(
            client_id=client_id,
            client_secret=None,
            timeout=timeout,
            transport=transport,
        )
        self.team_id = team_id
        self.key_id = key_id
        self._private_key = private_key
        self._clock = clock

    def authorization_params(self) -> Dict[str, str]:
        # Apple requires form_post whenever the name or email scope is requested.
        return {"response_mode": "form_post"}

    def client_secret(self) -> str:
        now = int(self._clock())
        return jwt.encode(
            {
                "iss": self.team_id,
                "iat": now,
                "exp": now + CLIENT_SECRET_LIFETIME_SECONDS,
                "aud": APPLE_ISSUER,
                "sub": self.client_id,
            },
            self._private_key,
            algorithm="ES256",
            headers={"kid": self.key_id},
        )

    def check_tokens(self, tokens: TokenSet) -> None:
        if not tokens.id_token:
            raise IdentityTokenError("No Apple identity token received")

    async def fetch_profile(
        self,
        client: httpx.AsyncClient,
        tokens: TokenSet,
        *,
        user_hint: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        claims = await self.verify_identity_token(client, tokens.id_token or "")
        return {"claims": claims, "hint": user_hint or {}}

    async def verify_identity_token(
        self, client: httpx.AsyncClient, id_token: str
    ) -> Dict[str, Any]:
        """Check signature, issuer, audience and expiry of an Apple ``id_token``."""
        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as exc:
            raise IdentityTokenError("Malformed Apple identity token") from exc

        try:
            response = await client.get(self.KEYS_URL)
        except httpx.HTTPError as exc:
            raise IdentityTokenError(f"Failed to fetch Apple signing keys: {exc}") from exc
        if not response.is_success:
            raise IdentityTokenError(
                "Failed to fetch Apple signing keys",
                upstream_status=response.status_code,
            )

        try:
            keys = response.json().get("keys", [])
        except (ValueError, AttributeError) as exc:
            raise IdentityTokenError(
                "Apple signing keys endpoint returned an unexpected body.",
                upstream_status=response.status_code,
            ) from exc

        jwk = next((key for key in keys if key.get("kid") == header.get("kid")), None)
        if jwk is None:
            raise IdentityTokenError("Apple identity token signed with an unknown key")

        try:
            signing_key = jwt.PyJWK(jwk).key
            claims = jwt.decode(
                id_token,
                signing_key,
                algorithms=[jwk.get("alg", "RS256")],
                audience=self.client_id,
                issuer=APPLE_ISSUER,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise IdentityTokenError(f"Apple identity token rejected: {exc}") from exc
        return claims

    def normalize(self, profile: Dict[str, Any]) -> NormalizedIdentity:
        claims = profile.get("claims", {})
        hint = profile.get("hint", {})
        # Email comes from the signed claims only, never from the posted user JSON.
        email = require_email(self.name, claims.get("email"))
        if str(claims.get("email_verified", "true")).lower() == "false":
            raise MissingEmailError("Apple reports the account email as unverified")
        name = hint.get("name") or {}
        display_name = " ".join(
            part for part in (name.get("firstName"), name.get("lastName")) if part
        ).strip()
        return NormalizedIdentity.build(
            email=email,
            display_name=display_name or email.split("@")[0] or "Apple User",
            external_id=claims.get("sub", ""),
        )


__all__ = ["APPLE_ISSUER", "AppleProvider"]
