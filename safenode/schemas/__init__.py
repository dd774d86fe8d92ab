"""Public schema exports."""

from .auth import (
    AccountSummary,
    OAuthCallbackPayload,
    ProviderListResponse,
    ProviderSummary,
    SessionRevocationResponse,
)

__all__ = [
    "AccountSummary",
    "OAuthCallbackPayload",
    "ProviderListResponse",
    "ProviderSummary",
    "SessionRevocationResponse",
]
