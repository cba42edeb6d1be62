"""
cowrite FastAPI entrypoint.

Provides a ``create_app`` factory that configures logging, CORS, the request
middleware stack, the shared backend services and the document routes.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from cowrite import __version__
from cowrite.config import Settings, load_settings
from cowrite.docs import DocumentStore
from cowrite.identity import AccountRegistry, TokenVerifier
from cowrite.logging_config import init_logging
from cowrite.server.core.errors import register_exception_handlers
from cowrite.server.core.middleware_ex import RequestIDMiddleware, TimingMiddleware
from cowrite.server.core.services import Services
from cowrite.server.routes import docs as docs_routes

LOGGER = logging.getLogger(__name__)
APP_VERSION = os.getenv("COWRITE_VERSION", __version__)


def _resolve_cors_origins(
    settings: Settings, allowed_origins: Optional[Sequence[str]]
) -> list[str]:
    if allowed_origins is not None:
        origins = list(allowed_origins)
    else:
        origins = list(settings.cors_origins)
    # Preserve order while removing duplicates
    return list(dict.fromkeys(origins))


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    accounts: Optional[AccountRegistry] = None,
    verifier: Optional[TokenVerifier] = None,
    enable_cors: bool = True,
    allowed_origins: Optional[Sequence[str]] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Application factory used by both CLI launches and ASGI servers."""
    settings = settings or load_settings()
    log_path = None
    if configure_logging:
        log_path = init_logging(settings.log_dir, level=settings.log_level)

    app = FastAPI(title="cowrite", version=APP_VERSION)
    app.state.version = APP_VERSION
    app.state.log_path = log_path
    app.state.services = Services.from_settings(
        settings, store=store, accounts=accounts, verifier=verifier
    )

    if enable_cors:
        origins = _resolve_cors_origins(settings, allowed_origins)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "DELETE"],
            allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        )
        LOGGER.info("CORS enabled", extra={"origins": origins})

    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)
    app.include_router(docs_routes.router)

    @app.get("/health", tags=["System"], summary="Simple health check")
    async def core_health():
        return {"status": "ok"}

    @app.get("/healthz", include_in_schema=False)
    async def _healthz():
        return {"ok": True}

    LOGGER.info(
        "FastAPI application ready",
        extra={
            "routes": len([r for r in app.routes if isinstance(r, APIRoute)]),
            "data_dir": str(settings.data_dir),
            "version": APP_VERSION,
        },
    )
    return app


__all__ = ["create_app", "APP_VERSION"]
