"""
Map a normalized provider identity onto a local account.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timezone
from typing import Callable

from safenode.clients.account_store import AccountStore
from safenode.core.errors import AccountExistsError
from safenode.models import Account, NormalizedIdentity

logger = logging.getLogger(__name__)

# Password hashes never start with this marker, so password login always fails.
UNUSABLE_PASSWORD_PREFIX = "!sso$"


def make_unusable_password_hash() -> str:
    """Random placeholder credential for accounts created through SSO."""
    digest = hashlib.sha256(secrets.token_bytes(32)).hexdigest()
    return f"{UNUSABLE_PASSWORD_PREFIX}{digest}"


class IdentityResolver:
    """Find-or-create accounts by email for federated logins."""

    def __init__(
        self,
        store: AccountStore,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store
        self._clock = clock

    def resolve(self, identity: NormalizedIdentity) -> Account:
        """
        Return the account for ``identity.email``, creating it on first login.

        Existing accounts only get ``last_login_at`` refreshed; token version,
        email and other security-relevant fields are never taken from the
        provider.
        """
        now = self._clock()
        account = self._store.find_by_email(identity.email)
        if account is not None:
            return self._store.record_login(account.id, now) or account

        try:
            account = self._store.create(
                email=identity.email,
                display_name=identity.display_name,
                password_hash=make_unusable_password_hash(),
                email_verified=True,
                last_login_at=now,
            )
        except AccountExistsError:
            # A concurrent first login for the same email won the insert.
            existing = self._store.find_by_email(identity.email)
            if existing is None:
                raise
            return self._store.record_login(existing.id, now) or existing

        logger.info("Created account %s via SSO", account.id)
        return account


__all__ = ["IdentityResolver", "UNUSABLE_PASSWORD_PREFIX", "make_unusable_password_hash"]
