from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated apps with their own AskService and fake backend.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from jiji.adapters.backend.factory import close_backend, warn_if_unconfigured
from jiji.api.routes import ask_router, health_router
from jiji.core.config import settings
from jiji.core.exception_handlers import setup_exception_handlers
from jiji.core.logging import configure_logging
from jiji.core.middleware import request_id_middleware, security_headers_middleware
from jiji.core.openapi import apply_openapi_customizations
from jiji.services.ask_service import AskService


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    warn_if_unconfigured()
    yield
    await close_backend()


def create_app(*, ask_service: AskService | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        ask_service: Pre-built service (tests inject fakes here). Defaults to
            one built from settings, with its own rate limiter.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Ask Jiji API",
        description=(
            "Answers a free-text learning question with a short overview and up "
            "to five related resources (slide decks, videos). Requires a "
            "Supabase user JWT and is rate limited per client address."
        ),
        version="0.1.0",
        lifespan=_lifespan,
    )

    app.state.ask_service = ask_service or AskService.from_settings(settings.app)

    # Middleware (last registered runs outermost)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(security_headers_middleware)

    setup_exception_handlers(app)

    app.include_router(ask_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
