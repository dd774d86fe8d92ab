"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - rootdir conftest import
    import _bootstrap  # type: ignore # noqa: F401

import os
from datetime import datetime, timezone
from typing import Dict, Optional

import pytest

from safenode.clients.account_store import generate_account_id
from safenode.core.errors import AccountExistsError
from safenode.models import Account


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class FakeClock:
    """Manually advanced replacement for ``time.time``."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryAccountStore:
    """Dict-backed account store mirroring ``SQLiteAccountStore`` semantics."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Account] = {}
        self.created = 0

    def find_by_id(self, account_id: str) -> Optional[Account]:
        return self.accounts.get(account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        normalized = email.strip().lower()
        return next((a for a in self.accounts.values() if a.email == normalized), None)

    def create(self, *, email, display_name, password_hash, email_verified, last_login_at=None) -> Account:
        if self.find_by_email(email) is not None:
            raise AccountExistsError(email)
        now = datetime.now(timezone.utc)
        account = Account(
            id=generate_account_id(),
            email=email.strip().lower(),
            display_name=display_name,
            password_hash=password_hash,
            email_verified=email_verified,
            last_login_at=last_login_at,
            created_at=now,
            updated_at=now,
        )
        self.accounts[account.id] = account
        self.created += 1
        return account

    def record_login(self, account_id: str, at: datetime) -> Optional[Account]:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        updated = account.model_copy(update={"last_login_at": at, "updated_at": at})
        self.accounts[account_id] = updated
        return updated

    def bump_token_version(self, account_id: str) -> Optional[Account]:
        account = self.accounts.get(account_id)
        if account is None:
            return None
        updated = account.model_copy(update={"token_version": account.token_version + 1})
        self.accounts[account_id] = updated
        return updated


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def isolated_environ(monkeypatch: pytest.MonkeyPatch) -> Dict[str, str]:
    """Give the test a private copy of ``os.environ``."""
    environ = dict(os.environ)
    monkeypatch.setattr(os, "environ", environ)
    return environ
