try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import re
from datetime import datetime, timezone

import pytest

from safenode.clients.account_store import SQLiteAccountStore, generate_account_id
from safenode.core.errors import AccountExistsError


@pytest.fixture
def store(tmp_path) -> SQLiteAccountStore:
    return SQLiteAccountStore(str(tmp_path / "nested" / "accounts.db"))


def _create(store: SQLiteAccountStore, email: str = "Person@Example.com"):
    return store.create(
        email=email,
        display_name="Person",
        password_hash="!sso$abc",
        email_verified=True,
    )


def test_generated_ids_are_unique_and_prefixed() -> None:
    first, second = generate_account_id(), generate_account_id()
    assert re.fullmatch(r"user-\d+-[0-9a-f]{16}", first)
    assert first != second


def test_create_normalizes_email_and_starts_at_version_one(store) -> None:
    account = _create(store)

    assert account.email == "person@example.com"
    assert account.token_version == 1
    assert account.email_verified is True
    assert store.find_by_email("  PERSON@example.COM ").id == account.id
    assert store.find_by_id(account.id).email == "person@example.com"


def test_duplicate_email_is_rejected(store) -> None:
    _create(store)
    with pytest.raises(AccountExistsError):
        _create(store, "person@example.com")


def test_unknown_account_lookups_return_none(store) -> None:
    assert store.find_by_id("user-missing") is None
    assert store.find_by_email("nobody@example.com") is None
    assert store.bump_token_version("user-missing") is None


def test_record_login_updates_timestamp(store) -> None:
    account = _create(store)
    at = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    updated = store.record_login(account.id, at)

    assert updated.last_login_at == at
    assert updated.token_version == 1


def test_bump_token_version_is_monotonic(store) -> None:
    account = _create(store)

    assert store.bump_token_version(account.id).token_version == 2
    assert store.bump_token_version(account.id).token_version == 3
    assert store.find_by_id(account.id).token_version == 3
