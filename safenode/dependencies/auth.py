"""
Authentication dependencies guarding protected routes.

The bearer header wins over the session cookie. Rejections are 401 with a
machine-readable ``code`` so clients can tell "log in again" apart from
"retry shortly".
"""

from __future__ import annotations

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from safenode.core.config import AppSettings
from safenode.core.errors import SessionRejectedError
from safenode.models import Account
from safenode.services import SessionValidator

from .clients import get_session_validator
from .config import get_app_settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def extract_session_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    cookie_name: str,
) -> Optional[str]:
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(cookie_name) or None


async def get_current_account(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
    validator: Annotated[SessionValidator, Depends(get_session_validator)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> Account:
    """Validate the presented session and attach the account to ``request.state``."""
    token = extract_session_token(request, credentials, settings.session.cookie_name)
    try:
        account = await validator.validate(token)
    except SessionRejectedError as exc:
        logger.warning("Rejected session on %s: %s", request.url.path, exc.code.value)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "unauthorized",
                "code": exc.code.value,
                "message": exc.message,
            },
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    request.state.account = account
    return account


CurrentAccount = Annotated[Account, Depends(get_current_account)]

__all__ = ["CurrentAccount", "bearer_scheme", "extract_session_token", "get_current_account"]
