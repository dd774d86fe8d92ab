"""
Account record as seen by the identity and session layers.

The full user record is owned by user management; only the fields the SSO
flow and session validation read or write are modelled here.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Account(BaseModel):
    """Represents a row of the ``accounts`` table."""

    id: str = Field(..., description="Stable account identifier, e.g. user-<ms>-<hex>.")
    email: str = Field(..., description="Lower-cased, trimmed, unique email address.")
    display_name: str = ""
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    token_version: int = Field(
        1,
        ge=1,
        description="Bumped to invalidate every session token issued before.",
    )
    password_hash: Optional[str] = Field(None, repr=False)
    created_at: datetime
    updated_at: datetime


__all__ = ["Account"]
