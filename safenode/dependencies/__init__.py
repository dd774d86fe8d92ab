"""Expose dependency helpers for FastAPI routers."""

from .auth import CurrentAccount, get_current_account
from .clients import (
    get_account_store,
    get_identity_resolver,
    get_provider_registry,
    get_session_issuer,
    get_session_validator,
    get_sso_service,
    get_transaction_store,
    threaded_lookup,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "CurrentAccount",
    "SettingsDependency",
    "get_account_store",
    "get_app_settings",
    "get_current_account",
    "get_identity_resolver",
    "get_provider_registry",
    "get_session_issuer",
    "get_session_validator",
    "get_sso_service",
    "get_transaction_store",
    "threaded_lookup",
]
