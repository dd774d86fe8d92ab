"""
Application configuration models and helpers.

Every provider credential, the session signing secret and the OAuth flow
tunables are read from the environment so the same build can run in
development, staging and production without code changes.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


def parse_duration(value: str | int) -> int:
    """Convert ``3600``, ``"90s"``, ``"30m"``, ``"24h"`` or ``"7d"`` to seconds."""
    if isinstance(value, int):
        return value
    match = _DURATION_PATTERN.match(value)
    if not match:
        raise ValueError(f"Unsupported duration {value!r}; use e.g. 3600, 30m, 24h, 7d.")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class GoogleSettings(_EnvSettings):
    """OAuth client registered with Google."""

    client_id: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_SECRET")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class MicrosoftSettings(_EnvSettings):
    """OAuth client registered with Microsoft Entra ID."""

    client_id: Optional[str] = Field(None, validation_alias="MICROSOFT_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="MICROSOFT_CLIENT_SECRET")
    tenant_id: str = Field(
        "common",
        validation_alias="MICROSOFT_TENANT_ID",
        description="Directory tenant substituted into the login endpoints.",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class GitHubSettings(_EnvSettings):
    """OAuth app registered with GitHub."""

    client_id: Optional[str] = Field(None, validation_alias="GITHUB_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="GITHUB_CLIENT_SECRET")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class AppleSettings(_EnvSettings):
    """Sign in with Apple service id and the key used to sign client secrets."""

    client_id: Optional[str] = Field(None, validation_alias="APPLE_CLIENT_ID")
    team_id: Optional[str] = Field(None, validation_alias="APPLE_TEAM_ID")
    key_id: Optional[str] = Field(None, validation_alias="APPLE_KEY_ID")
    private_key: Optional[str] = Field(
        None,
        validation_alias="APPLE_PRIVATE_KEY",
        description="PEM encoded ES256 key; literal \\n sequences are accepted.",
    )

    @field_validator("private_key")
    @classmethod
    def _expand_newlines(cls, value: Optional[str]) -> Optional[str]:
        """Environment files often carry the PEM body on a single line."""
        if value is None:
            return value
        return value.replace("\\n", "\n")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.team_id and self.key_id and self.private_key)


class SessionSettings(_EnvSettings):
    """Session token issuance and validation."""

    jwt_secret: Optional[str] = Field(None, validation_alias="JWT_SECRET")
    token_ttl_seconds: int = Field(86400, validation_alias="JWT_EXPIRES_IN")
    algorithm: str = "HS256"
    issuer: str = "safenode"
    audience: str = "safenode-api"
    cookie_name: str = "safenode_token"
    lookup_retries: int = Field(6, validation_alias="SESSION_LOOKUP_RETRIES")
    lookup_initial_delay_seconds: float = Field(
        0.075, validation_alias="SESSION_LOOKUP_INITIAL_DELAY"
    )

    @field_validator("token_ttl_seconds", mode="before")
    @classmethod
    def _parse_ttl(cls, value: str | int) -> int:
        seconds = parse_duration(value)
        if seconds <= 0:
            raise ValueError("JWT_EXPIRES_IN must be positive.")
        return seconds


class OAuthSettings(_EnvSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")
    sweep_interval_seconds: int = Field(300, validation_alias="OAUTH_SWEEP_INTERVAL")
    http_timeout_seconds: float = Field(10.0, validation_alias="OAUTH_HTTP_TIMEOUT")
    callback_base_url: Optional[str] = Field(
        None,
        validation_alias="SSO_CALLBACK_BASE_URL",
        description="Externally reachable backend base URL told to providers.",
    )
    backend_url: Optional[str] = Field(None, validation_alias="BACKEND_URL")
    allowed_redirect_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="SSO_ALLOWED_REDIRECT_ORIGINS",
        description="Origins permitted as front-end redirect targets; empty allows any.",
    )

    @field_validator("allowed_redirect_origins", mode="before")
    @classmethod
    def _split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing origins as a comma-separated string."""
        if isinstance(value, (tuple, list)):
            items = value
        else:
            items = value.split(",")
        return tuple(item.strip().rstrip("/") for item in items if item.strip())


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: str = Field(
        "http://localhost:5173",
        validation_alias="FRONTEND_URL",
        description="Front-end origin hosting the SSO landing and error pages.",
    )
    database_path: str = Field("data/safenode.db", validation_alias="DATABASE_PATH")
    session: SessionSettings = Field(default_factory=SessionSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    microsoft: MicrosoftSettings = Field(default_factory=MicrosoftSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    apple: AppleSettings = Field(default_factory=AppleSettings)

    @field_validator("frontend_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _require_signing_secret(self) -> "AppSettings":
        if self.session.jwt_secret:
            return self
        if self.environment == "production":
            raise ValueError("JWT_SECRET environment variable is required in production")
        logger.warning(
            "JWT_SECRET not set; using an ephemeral secret. "
            "Sessions will not survive a restart."
        )
        self.session.jwt_secret = secrets.token_urlsafe(32)
        return self


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "AppleSettings",
    "GitHubSettings",
    "GoogleSettings",
    "MicrosoftSettings",
    "OAuthSettings",
    "SessionSettings",
    "get_settings",
    "parse_duration",
]
