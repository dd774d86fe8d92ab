"""Google OAuth 2.0 / OpenID Connect provider."""

from __future__ import annotations

from typing import Any, Dict

from safenode.models import NormalizedIdentity, ProviderName

from .base import IdentityProvider, require_email


class GoogleProvider(IdentityProvider):
    name = ProviderName.GOOGLE
    display_name = "Google"
    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
    SCOPES = ("openid", "email", "profile")

    def normalize(self, profile: Dict[str, Any]) -> NormalizedIdentity:
        return NormalizedIdentity.build(
            email=require_email(self.name, profile.get("email")),
            display_name=profile.get("name") or profile.get("given_name"),
            external_id=profile.get("id") or profile.get("sub") or "",
        )


__all__ = ["GoogleProvider"]
