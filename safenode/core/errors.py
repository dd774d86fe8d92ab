"""
Error taxonomy for the SSO flow and session validation.

Every error carries a stable machine-readable ``code``. SSO errors raised
during a callback are turned into a redirect to the front-end error page;
during login initiation they become 400 responses.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Optional


class SSOError(Exception):
    """Base class for failures in the federated login flow."""

    code = "sso_failed"
    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class InvalidProviderError(SSOError):
    code = "invalid_provider"


class MissingRedirectUriError(SSOError):
    code = "missing_redirect_uri"


class InvalidRedirectUriError(SSOError):
    code = "invalid_redirect_uri"


class ProviderNotConfiguredError(SSOError):
    code = "provider_not_configured"


class InvalidStateError(SSOError):
    code = "invalid_or_expired_state"


class ProviderMismatchError(SSOError):
    code = "provider_mismatch"


class MissingCallbackParametersError(SSOError):
    code = "missing_parameters"


class ProviderAuthorizationError(SSOError):
    """The identity provider redirected back with an ``error`` parameter."""

    code = "oauth_error"

    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(description or error)
        self.code = error or self.code


class UpstreamError(SSOError):
    """A call to the identity provider failed."""

    status_code = HTTPStatus.BAD_GATEWAY

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class TokenExchangeError(UpstreamError):
    code = "token_exchange_failed"


class NoAccessTokenError(UpstreamError):
    code = "no_access_token"


class UserInfoFetchError(UpstreamError):
    code = "userinfo_fetch_failed"


class MissingEmailError(UpstreamError):
    code = "email_unavailable"


class IdentityTokenError(UpstreamError):
    code = "invalid_identity_token"


class AuthErrorCode(str, Enum):
    """Terminal rejection reasons reported to clients of protected routes."""

    MISSING_TOKEN = "MISSING_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TOKEN_VERSION_MISMATCH = "TOKEN_VERSION_MISMATCH"
    AUTH_ERROR = "AUTH_ERROR"


_DEFAULT_MESSAGES = {
    AuthErrorCode.MISSING_TOKEN: "Missing or invalid Authorization header. Expected: Bearer <token>",
    AuthErrorCode.INVALID_TOKEN: "Invalid or expired token",
    AuthErrorCode.USER_NOT_FOUND: "User not found - authentication invalid",
    AuthErrorCode.TOKEN_VERSION_MISMATCH: "Token has been invalidated. Please log in again.",
    AuthErrorCode.AUTH_ERROR: "Authentication failed",
}


class SessionRejectedError(Exception):
    """Raised when a presented session token must not be honoured."""

    def __init__(self, code: AuthErrorCode, message: str | None = None) -> None:
        self.code = code
        self.message = message or _DEFAULT_MESSAGES[code]
        super().__init__(f"{code.value}: {self.message}")


class AccountExistsError(Exception):
    """Raised by the account store when the email is already registered."""


__all__ = [
    "AccountExistsError",
    "AuthErrorCode",
    "IdentityTokenError",
    "InvalidProviderError",
    "InvalidRedirectUriError",
    "InvalidStateError",
    "MissingCallbackParametersError",
    "MissingEmailError",
    "MissingRedirectUriError",
    "NoAccessTokenError",
    "ProviderAuthorizationError",
    "ProviderMismatchError",
    "ProviderNotConfiguredError",
    "SSOError",
    "SessionRejectedError",
    "TokenExchangeError",
    "UpstreamError",
    "UserInfoFetchError",
]
