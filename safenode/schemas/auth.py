"""Schemas related to SSO flows and authenticated sessions."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class OAuthCallbackPayload(BaseModel):
    """Parameters an identity provider sends back to the callback endpoint."""

    code: Optional[str] = Field(None, description="Authorization code issued by the provider.")
    state: Optional[str] = Field(None, description="Transaction id issued when login started.")
    error: Optional[str] = Field(None, description="Provider-reported error code.")
    error_description: Optional[str] = None
    user: Optional[Union[str, Dict[str, Any]]] = Field(
        None,
        description="Apple only: JSON profile posted on the first consent.",
    )

    def user_hint(self) -> Optional[Dict[str, Any]]:
        if self.user is None or isinstance(self.user, dict):
            return self.user
        try:
            parsed = json.loads(self.user)
        except ValueError:
            logger.warning("Ignoring unparseable user payload on SSO callback")
            return None
        return parsed if isinstance(parsed, dict) else None


class ProviderSummary(BaseModel):
    id: str
    name: str
    type: str = "oauth"
    enabled: bool = True


class ProviderListResponse(BaseModel):
    success: bool = True
    providers: List[ProviderSummary] = Field(default_factory=list)


class AccountSummary(BaseModel):
    """Identity attached to authenticated requests."""

    id: str
    email: str
    display_name: str
    email_verified: bool
    last_login_at: Optional[datetime] = None
    token_version: int


class SessionRevocationResponse(BaseModel):
    status: str = "revoked"
    token_version: int
    token: str = Field(..., description="Replacement token issued at the new version.")


__all__ = [
    "AccountSummary",
    "OAuthCallbackPayload",
    "ProviderListResponse",
    "ProviderSummary",
    "SessionRevocationResponse",
]
