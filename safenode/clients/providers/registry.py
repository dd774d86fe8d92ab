"""
Provider registry: resolves a provider tag to a configured client.

Credentials come from :class:`AppSettings`; a provider whose credentials
are incomplete is treated as absent so login fails closed.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

import httpx

from safenode.core.config import AppSettings
from safenode.core.errors import ProviderNotConfiguredError
from safenode.models import ProviderName

from .apple import AppleProvider
from .base import IdentityProvider, ProviderEndpoints
from .github import GitHubProvider
from .google import GoogleProvider
from .microsoft import MicrosoftProvider


class ProviderRegistry:
    """Lazily build and cache one :class:`IdentityProvider` per configured tag."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._instances: Dict[ProviderName, IdentityProvider] = {}
        self._builders: Dict[ProviderName, Callable[[], Optional[IdentityProvider]]] = {
            ProviderName.GOOGLE: self._build_google,
            ProviderName.MICROSOFT: self._build_microsoft,
            ProviderName.GITHUB: self._build_github,
            ProviderName.APPLE: self._build_apple,
        }

    @property
    def _timeout(self) -> float:
        return self._settings.oauth.http_timeout_seconds

    def _build_google(self) -> Optional[IdentityProvider]:
        google = self._settings.google
        if not google.is_configured:
            return None
        return GoogleProvider(
            client_id=google.client_id,
            client_secret=google.client_secret,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _build_microsoft(self) -> Optional[IdentityProvider]:
        microsoft = self._settings.microsoft
        if not microsoft.is_configured:
            return None
        return MicrosoftProvider(
            client_id=microsoft.client_id,
            client_secret=microsoft.client_secret,
            tenant_id=microsoft.tenant_id,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _build_github(self) -> Optional[IdentityProvider]:
        github = self._settings.github
        if not github.is_configured:
            return None
        return GitHubProvider(
            client_id=github.client_id,
            client_secret=github.client_secret,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _build_apple(self) -> Optional[IdentityProvider]:
        apple = self._settings.apple
        if not apple.is_configured:
            return None
        return AppleProvider(
            client_id=apple.client_id,
            team_id=apple.team_id,
            key_id=apple.key_id,
            private_key=apple.private_key,
            timeout=self._timeout,
            transport=self._transport,
        )

    def get(self, provider: ProviderName) -> IdentityProvider:
        """Return the client for ``provider`` or raise ``provider_not_configured``."""
        instance = self._instances.get(provider)
        if instance is not None:
            return instance
        builder = self._builders.get(provider)
        instance = builder() if builder else None
        if instance is None:
            raise ProviderNotConfiguredError(
                f"SSO provider {provider.value} is not configured. "
                "Please set up provider credentials."
            )
        self._instances[provider] = instance
        return instance

    def describe(self, provider: ProviderName) -> ProviderEndpoints:
        return self.get(provider).endpoints

    def is_configured(self, provider: ProviderName) -> bool:
        try:
            self.get(provider)
        except ProviderNotConfiguredError:
            return False
        return True

    def configured(self) -> List[IdentityProvider]:
        """Configured providers in enumeration order."""
        return [self.get(name) for name in ProviderName if self.is_configured(name)]


__all__ = ["ProviderRegistry"]
