"""
Session token issuance and validation.

Tokens are HS256 JWTs carrying the account's ``tokenVersion`` at issue time.
Bumping the version on the account invalidates every older token without a
revocation list: validation rejects any token whose version is lower than
the account's current one.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Union

import jwt

from safenode.core.config import SessionSettings
from safenode.core.errors import AuthErrorCode, SessionRejectedError
from safenode.models import Account

logger = logging.getLogger(__name__)

AccountLookup = Callable[[str], Union[Optional[Account], Awaitable[Optional[Account]]]]
Sleep = Callable[[float], Awaitable[Any]]

_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud"]


@dataclass(frozen=True)
class LookupRetryPolicy:
    """Exponential backoff used while a freshly written account is not yet visible."""

    retries: int = 6
    initial_delay: float = 0.075

    def delays(self) -> Iterator[float]:
        for attempt in range(self.retries):
            yield self.initial_delay * (2**attempt)


class SessionIssuer:
    """Mint signed session tokens for accounts."""

    def __init__(
        self,
        settings: SessionSettings,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not settings.jwt_secret:
            raise ValueError("A token signing secret must be configured.")
        self._settings = settings
        self._clock = clock

    def issue(self, account: Account) -> str:
        now = int(self._clock())
        payload = {
            "userId": account.id,
            "email": account.email,
            "tokenVersion": account.token_version,
            "iat": now,
            "exp": now + self._settings.token_ttl_seconds,
            "iss": self._settings.issuer,
            "aud": self._settings.audience,
        }
        return jwt.encode(
            payload, self._settings.jwt_secret, algorithm=self._settings.algorithm
        )


class SessionValidator:
    """Verify a presented token and resolve it to a live, current account."""

    def __init__(
        self,
        settings: SessionSettings,
        *,
        account_lookup: AccountLookup,
        retry_policy: LookupRetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._lookup = account_lookup
        self._retry = retry_policy or LookupRetryPolicy(
            retries=settings.lookup_retries,
            initial_delay=settings.lookup_initial_delay_seconds,
        )
        self._sleep = sleep

    def decode(self, token: str) -> Dict[str, Any]:
        """Check signature, expiry, issuer and audience; return the claims."""
        try:
            return jwt.decode(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.algorithm],
                issuer=self._settings.issuer,
                audience=self._settings.audience,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as exc:
            raise SessionRejectedError(AuthErrorCode.INVALID_TOKEN) from exc

    async def validate(self, token: str | None) -> Account:
        """Return the account a token belongs to or raise :class:`SessionRejectedError`."""
        if not token:
            raise SessionRejectedError(AuthErrorCode.MISSING_TOKEN)

        payload = self.decode(token)
        user_id = payload.get("userId")
        token_version = payload.get("tokenVersion", 1)
        if not isinstance(user_id, str) or not user_id:
            raise SessionRejectedError(AuthErrorCode.INVALID_TOKEN)
        if isinstance(token_version, bool) or not isinstance(token_version, int) or token_version < 1:
            raise SessionRejectedError(AuthErrorCode.INVALID_TOKEN)

        try:
            account = await self._resolve_subject(user_id)
        except Exception as exc:
            logger.exception("Account lookup failed for %s", user_id)
            raise SessionRejectedError(AuthErrorCode.AUTH_ERROR) from exc

        if account is None:
            logger.warning(
                "User %s not found after %d retries - token invalid",
                user_id,
                self._retry.retries,
            )
            raise SessionRejectedError(AuthErrorCode.USER_NOT_FOUND)

        if token_version < account.token_version:
            logger.warning(
                "Token version %d below current %d for %s - token invalidated",
                token_version,
                account.token_version,
                user_id,
            )
            raise SessionRejectedError(AuthErrorCode.TOKEN_VERSION_MISMATCH)

        return account

    async def _lookup_once(self, user_id: str) -> Optional[Account]:
        result = self._lookup(user_id)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _resolve_subject(self, user_id: str) -> Optional[Account]:
        # Accounts written moments ago may not be visible to this read path yet.
        account = await self._lookup_once(user_id)
        for delay in self._retry.delays():
            if account is not None:
                break
            await self._sleep(delay)
            account = await self._lookup_once(user_id)
        return account


__all__ = [
    "AccountLookup",
    "LookupRetryPolicy",
    "SessionIssuer",
    "SessionValidator",
]
