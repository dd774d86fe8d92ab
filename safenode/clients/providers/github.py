"""GitHub OAuth app provider."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from safenode.core.errors import UserInfoFetchError
from safenode.models import NormalizedIdentity, ProviderName, TokenSet

from .base import IdentityProvider, require_email


def select_primary_email(emails: List[Dict[str, Any]]) -> Optional[str]:
    """Pick the entry flagged primary, else the first entry."""
    if not emails:
        return None
    chosen = next((entry for entry in emails if entry.get("primary")), emails[0])
    return chosen.get("email")


class GitHubProvider(IdentityProvider):
    """GitHub may hide the public email, so addresses come from ``/user/emails``."""

    name = ProviderName.GITHUB
    display_name = "GitHub"
    AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
    TOKEN_URL = "https://github.com/login/oauth/access_token"
    USERINFO_URL = "https://api.github.com/user"
    EMAILS_URL = "https://api.github.com/user/emails"
    SCOPES = ("read:user", "user:email")

    async def fetch_profile(
        self,
        client: httpx.AsyncClient,
        tokens: TokenSet,
        *,
        user_hint: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        profile = await self._get_json(client, self.USERINFO_URL, tokens)
        emails = await self._get_json(client, self.EMAILS_URL, tokens)
        if not isinstance(emails, list):
            raise UserInfoFetchError("GitHub email list has an unexpected shape.")
        return {**profile, "emails": emails}

    def normalize(self, profile: Dict[str, Any]) -> NormalizedIdentity:
        email = select_primary_email(profile.get("emails") or [])
        return NormalizedIdentity.build(
            email=require_email(self.name, email),
            display_name=profile.get("name") or profile.get("login"),
            external_id=profile.get("id", ""),
        )


__all__ = ["GitHubProvider", "select_primary_email"]
