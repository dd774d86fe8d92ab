"""Microsoft identity platform (Entra ID) provider."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from safenode.models import NormalizedIdentity, ProviderName

from .base import IdentityProvider, ProviderEndpoints, require_email

DEFAULT_TENANT = "common"


class MicrosoftProvider(IdentityProvider):
    name = ProviderName.MICROSOFT
    display_name = "Microsoft"
    AUTHORIZE_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/authorize"
    TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
    USERINFO_URL = "https://graph.microsoft.com/v1.0/me"
    SCOPES = ("openid", "email", "profile", "User.Read")

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str | None,
        tenant_id: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            client_id=client_id,
            client_secret=client_secret,
            timeout=timeout,
            transport=transport,
        )
        self.tenant_id = tenant_id or DEFAULT_TENANT

    @property
    def endpoints(self) -> ProviderEndpoints:
        return ProviderEndpoints(
            authorize_url=self.AUTHORIZE_URL.format(tenant=self.tenant_id),
            token_url=self.TOKEN_URL.format(tenant=self.tenant_id),
            userinfo_url=self.USERINFO_URL,
            scopes=self.SCOPES,
        )

    def normalize(self, profile: Dict[str, Any]) -> NormalizedIdentity:
        # Work and school accounts without a mailbox only expose the UPN.
        email = profile.get("mail") or profile.get("userPrincipalName")
        return NormalizedIdentity.build(
            email=require_email(self.name, email),
            display_name=profile.get("displayName") or profile.get("givenName"),
            external_id=profile.get("id") or "",
        )


__all__ = ["DEFAULT_TENANT", "MicrosoftProvider"]
