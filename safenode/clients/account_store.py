"""SQLite-backed account storage used by SSO login and session validation."""

from __future__ import annotations

import secrets
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from safenode.core.errors import AccountExistsError
from safenode.models import Account

_COLUMNS = (
    "id, email, display_name, password_hash, email_verified, "
    "last_login_at, token_version, created_at, updated_at"
)


def generate_account_id() -> str:
    return f"user-{int(time.time() * 1000)}-{secrets.token_hex(8)}"


class AccountStore(Protocol):
    """Account operations the identity resolver and session validator rely on."""

    def find_by_id(self, account_id: str) -> Optional[Account]:
        ...

    def find_by_email(self, email: str) -> Optional[Account]:
        ...

    def create(
        self,
        *,
        email: str,
        display_name: str,
        password_hash: str,
        email_verified: bool,
        last_login_at: datetime | None = None,
    ) -> Account:
        ...

    def record_login(self, account_id: str, at: datetime) -> Optional[Account]:
        ...

    def bump_token_version(self, account_id: str) -> Optional[Account]:
        ...


class SQLiteAccountStore:
    """Account table keyed by id with a unique, normalized email column."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    display_name TEXT NOT NULL DEFAULT '',
                    password_hash TEXT,
                    email_verified INTEGER NOT NULL DEFAULT 0,
                    last_login_at TEXT,
                    token_version INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    @staticmethod
    def _to_account(row: sqlite3.Row | None) -> Optional[Account]:
        if row is None:
            return None
        return Account(
            id=row["id"],
            email=row["email"],
            display_name=row["display_name"],
            password_hash=row["password_hash"],
            email_verified=bool(row["email_verified"]),
            last_login_at=row["last_login_at"],
            token_version=row["token_version"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _fetch_one(self, where: str, value: str) -> Optional[Account]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE {where} = ?",
                (value,),
            ).fetchone()
        return self._to_account(row)

    def find_by_id(self, account_id: str) -> Optional[Account]:
        return self._fetch_one("id", account_id)

    def find_by_email(self, email: str) -> Optional[Account]:
        return self._fetch_one("email", email.strip().lower())

    def create(
        self,
        *,
        email: str,
        display_name: str,
        password_hash: str,
        email_verified: bool,
        last_login_at: datetime | None = None,
    ) -> Account:
        now = datetime.now(timezone.utc).isoformat()
        account_id = generate_account_id()
        try:
            with self._connect() as conn:
                conn.execute(
                    f"""
                    INSERT INTO accounts ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
                    """,
                    (
                        account_id,
                        email.strip().lower(),
                        display_name,
                        password_hash,
                        int(email_verified),
                        last_login_at.isoformat() if last_login_at else None,
                        now,
                        now,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise AccountExistsError(email) from exc
        account = self.find_by_id(account_id)
        if account is None:  # pragma: no cover - same connection semantics
            raise RuntimeError(f"Account {account_id} vanished after insert")
        return account

    def record_login(self, account_id: str, at: datetime) -> Optional[Account]:
        stamp = at.isoformat()
        with self._connect() as conn:
            conn.execute(
                "UPDATE accounts SET last_login_at = ?, updated_at = ? WHERE id = ?",
                (stamp, stamp, account_id),
            )
        return self.find_by_id(account_id)

    def bump_token_version(self, account_id: str) -> Optional[Account]:
        """Invalidate every session token issued to the account so far."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE accounts
                SET token_version = token_version + 1, updated_at = ?
                WHERE id = ?
                """,
                (now, account_id),
            )
        return self.find_by_id(account_id)


__all__ = ["AccountStore", "SQLiteAccountStore", "generate_account_id"]
