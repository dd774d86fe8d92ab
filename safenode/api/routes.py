"""
FastAPI routes for federated login and session management.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from safenode.clients import SQLiteAccountStore
from safenode.core.config import AppSettings
from safenode.core.errors import SSOError, UpstreamError
from safenode.dependencies import (
    CurrentAccount,
    get_account_store,
    get_app_settings,
    get_session_issuer,
    get_sso_service,
)
from safenode.schemas import (
    AccountSummary,
    OAuthCallbackPayload,
    ProviderListResponse,
    ProviderSummary,
    SessionRevocationResponse,
)
from safenode.services import LoginResult, SessionIssuer, SSOService
from safenode.utils.urls import with_query_params

router = APIRouter()
logger = logging.getLogger(__name__)

SSO_ERROR_PATH = "/auth/sso/error"


def _backend_callback_url(request: Request, provider: str, settings: AppSettings) -> str:
    """URL the identity provider must call back; reachable by the server, not the SPA."""
    base = settings.oauth.callback_base_url or settings.oauth.backend_url
    if not base:
        scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
        host = (
            request.headers.get("x-forwarded-host")
            or request.headers.get("host")
            or request.url.netloc
        )
        base = f"{scheme}://{host}"
    return f"{base.rstrip('/')}/api/sso/callback/{provider}"


def _error_redirect(settings: AppSettings, error: str) -> RedirectResponse:
    url = with_query_params(f"{settings.frontend_base_url}{SSO_ERROR_PATH}", {"error": error})
    return RedirectResponse(url=url, status_code=HTTPStatus.SEE_OTHER)


def _success_redirect(settings: AppSettings, result: LoginResult) -> RedirectResponse:
    response = RedirectResponse(url=result.redirect_url, status_code=HTTPStatus.SEE_OTHER)
    response.set_cookie(
        settings.session.cookie_name,
        result.token,
        max_age=settings.session.token_ttl_seconds,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
    )
    return response


async def _finish_callback(
    provider: str,
    params: Dict[str, Any],
    service: SSOService,
    settings: AppSettings,
) -> RedirectResponse:
    """Complete the login; any failure lands on the front-end error page."""
    try:
        payload = OAuthCallbackPayload.model_validate(params)
        result = await service.complete_login(provider, payload)
    except ValidationError:
        logger.warning("Malformed SSO callback for %s", provider)
        return _error_redirect(settings, "missing_parameters")
    except UpstreamError as exc:
        logger.warning(
            "SSO callback for %s failed upstream: %s status=%s",
            provider,
            exc.code,
            exc.upstream_status,
        )
        return _error_redirect(settings, exc.code)
    except SSOError as exc:
        logger.warning("SSO callback for %s rejected: %s", provider, exc.code)
        return _error_redirect(settings, exc.code)
    except Exception:  # pylint: disable=broad-except
        logger.exception("Unexpected SSO callback failure for %s", provider)
        return _error_redirect(settings, "sso_callback_failed")

    logger.info("SSO login completed provider=%s user=%s", provider, result.account.id)
    return _success_redirect(settings, result)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/sso/providers", response_model=ProviderListResponse)
async def list_providers(
    service: Annotated[SSOService, Depends(get_sso_service)],
) -> ProviderListResponse:
    """List identity providers with complete credentials."""
    return ProviderListResponse(
        providers=[
            ProviderSummary(id=provider.name.value, name=provider.display_name)
            for provider in service.registry.configured()
        ]
    )


@router.get("/sso/login/{provider}", status_code=HTTPStatus.TEMPORARY_REDIRECT)
async def start_sso_login(
    provider: str,
    request: Request,
    service: Annotated[SSOService, Depends(get_sso_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    redirect_uri: Optional[str] = Query(
        default=None,
        description="Front-end URL receiving the session token once login completes.",
    ),
) -> RedirectResponse:
    """Redirect the browser to the provider's consent screen."""
    try:
        authorization_url = service.start_login(
            provider,
            redirect_uri,
            callback_uri=_backend_callback_url(request, provider, settings),
        )
    except SSOError as exc:
        raise HTTPException(
            status_code=exc.status_code,
            detail={"error": exc.code, "message": exc.message},
        ) from exc

    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)


@router.get("/sso/callback/{provider}")
async def handle_sso_callback_get(
    provider: str,
    service: Annotated[SSOService, Depends(get_sso_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
) -> RedirectResponse:
    params = {
        "code": code,
        "state": state,
        "error": error,
        "error_description": error_description,
    }
    return await _finish_callback(provider, params, service, settings)


@router.post("/sso/callback/{provider}")
async def handle_sso_callback_post(
    provider: str,
    request: Request,
    service: Annotated[SSOService, Depends(get_sso_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> RedirectResponse:
    """Form-post (Apple) or JSON callback."""
    content_type = request.headers.get("content-type", "")
    params: Dict[str, Any] = {}
    if "application/json" in content_type:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            params = body
    else:
        form = await request.form()
        params = {key: value for key, value in form.items() if isinstance(value, str)}
    return await _finish_callback(provider, params, service, settings)


@router.get("/auth/me", response_model=AccountSummary)
async def read_current_account(account: CurrentAccount) -> AccountSummary:
    """Return the identity attached to the validated session."""
    return AccountSummary(**account.model_dump(exclude={"password_hash"}))


@router.post("/auth/sessions/revoke", response_model=SessionRevocationResponse)
async def revoke_all_sessions(
    account: CurrentAccount,
    store: Annotated[SQLiteAccountStore, Depends(get_account_store)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> SessionRevocationResponse:
    """Invalidate every outstanding session token, including the caller's."""
    updated = await asyncio.to_thread(store.bump_token_version, account.id)
    if updated is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Account not found.")
    logger.info("Revoked sessions for %s (token version %d)", updated.id, updated.token_version)
    return SessionRevocationResponse(
        token_version=updated.token_version,
        token=issuer.issue(updated),
    )


__all__ = ["router"]
