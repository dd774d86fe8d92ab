"""Identity provider clients and the registry that selects them by tag."""

from .apple import AppleProvider
from .base import IdentityProvider, ProviderEndpoints, build_code_challenge
from .github import GitHubProvider
from .google import GoogleProvider
from .microsoft import MicrosoftProvider
from .registry import ProviderRegistry

__all__ = [
    "AppleProvider",
    "GitHubProvider",
    "GoogleProvider",
    "IdentityProvider",
    "MicrosoftProvider",
    "ProviderEndpoints",
    "ProviderRegistry",
    "build_code_challenge",
]
