"""
FastAPI application entrypoint for the SafeNode identity service.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from safenode import __version__
from safenode.api.routes import router as api_router
from safenode.core.config import get_settings
from safenode.core.logging import configure_logging
from safenode.dependencies import get_transaction_store
from safenode.services import run_sweeper


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the OAuth transaction sweeper for the lifetime of the process."""
    settings = get_settings()
    sweeper = asyncio.create_task(
        run_sweeper(
            get_transaction_store(),
            interval_seconds=settings.oauth.sweep_interval_seconds,
        ),
        name="oauth-transaction-sweeper",
    )
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="SafeNode Identity",
        version=__version__,
        description="Federated single sign-on and session validation.",
        lifespan=lifespan,
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
