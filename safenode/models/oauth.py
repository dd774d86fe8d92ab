"""
Models for in-flight OAuth transactions and normalized provider profiles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ProviderName(str, Enum):
    """Identity providers accepted by the login and callback routes."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"
    GITHUB = "github"
    APPLE = "apple"
    OKTA = "okta"
    SAML = "saml"

    @classmethod
    def parse(cls, value: str) -> Optional["ProviderName"]:
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(slots=True, frozen=True)
class OAuthTransaction:
    """Server-held state for one login attempt, keyed by the OAuth ``state``."""

    transaction_id: str
    provider: ProviderName
    frontend_redirect_uri: str
    callback_uri: str
    pkce_verifier: str = field(repr=False)
    created_at: float

    def age(self, now: float) -> float:
        return now - self.created_at


@dataclass(slots=True, frozen=True)
class NormalizedIdentity:
    """Provider-agnostic profile produced once per successful code exchange."""

    email: str
    display_name: str
    external_id: str

    @classmethod
    def build(cls, *, email: str, display_name: str | None, external_id: Any) -> "NormalizedIdentity":
        normalized_email = email.strip().lower()
        return cls(
            email=normalized_email,
            display_name=(display_name or "").strip() or normalized_email.split("@")[0],
            external_id=str(external_id),
        )


@dataclass(slots=True)
class TokenSet:
    """Subset of a token endpoint response the profile fetch depends on."""

    access_token: Optional[str]
    id_token: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)


__all__ = ["NormalizedIdentity", "OAuthTransaction", "ProviderName", "TokenSet"]
