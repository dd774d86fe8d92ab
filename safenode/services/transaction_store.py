"""
Process-local storage for in-flight OAuth transactions.

A transaction is created when a login starts and consumed by the matching
callback. Entries live in a dict on the event loop thread, so every
operation runs without an ``await`` and is atomic with respect to other
requests. A login must therefore complete against the process that started
it; multi-instance deployments need a shared store implementing
:class:`TransactionStore`.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from typing import Callable, Dict, Optional, Protocol

from safenode.models import OAuthTransaction, ProviderName

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 600
DEFAULT_SWEEP_INTERVAL_SECONDS = 300


class TransactionStore(Protocol):
    def create(
        self,
        provider: ProviderName,
        frontend_redirect_uri: str,
        *,
        callback_uri: str,
    ) -> OAuthTransaction:
        ...

    def consume(self, transaction_id: str) -> Optional[OAuthTransaction]:
        ...

    def sweep(self) -> int:
        ...


class InMemoryTransactionStore:
    """Dict-backed transaction store with a fixed time-to-live."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._transactions: Dict[str, OAuthTransaction] = {}

    def __len__(self) -> int:
        return len(self._transactions)

    def create(
        self,
        provider: ProviderName,
        frontend_redirect_uri: str,
        *,
        callback_uri: str,
    ) -> OAuthTransaction:
        """Start a transaction; the id doubles as the OAuth ``state`` value."""
        transaction = OAuthTransaction(
            transaction_id=secrets.token_hex(32),
            provider=provider,
            frontend_redirect_uri=frontend_redirect_uri,
            callback_uri=callback_uri,
            pkce_verifier=secrets.token_urlsafe(32),
            created_at=self._clock(),
        )
        self._transactions[transaction.transaction_id] = transaction
        return transaction

    def consume(self, transaction_id: str) -> Optional[OAuthTransaction]:
        """
        Remove and return the transaction, or ``None`` when it is unknown,
        already consumed or older than the TTL (``invalid_or_expired_state``).
        """
        transaction = self._transactions.pop(transaction_id, None)
        if transaction is None:
            return None
        if transaction.age(self._clock()) > self._ttl:
            logger.info("Discarding expired OAuth transaction for %s", transaction.provider.value)
            return None
        return transaction

    def sweep(self) -> int:
        """Drop abandoned transactions and return how many were removed."""
        now = self._clock()
        expired = [
            key
            for key, transaction in self._transactions.items()
            if transaction.age(now) > self._ttl
        ]
        for key in expired:
            del self._transactions[key]
        return len(expired)


async def run_sweeper(
    store: TransactionStore,
    *,
    interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
) -> None:
    """Sweep ``store`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = store.sweep()
        if removed:
            logger.info("Swept %d expired OAuth transactions", removed)


__all__ = [
    "DEFAULT_SWEEP_INTERVAL_SECONDS",
    "DEFAULT_TTL_SECONDS",
    "InMemoryTransactionStore",
    "TransactionStore",
    "run_sweeper",
]
