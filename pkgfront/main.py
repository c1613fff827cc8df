"""pkgfront FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app(): application factory, one call per server or test
  - lifespan: closes the outbound HTTP client the factory created

The error hook sits outermost, then CORS, then the GET / home route, then a
catch-all mount serving static files with fall-through to the delegate.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI
from starlette.types import ASGIApp

from pkgfront.config import ServerConfig
from pkgfront.cors import PermissiveCORSMiddleware
from pkgfront.errors import install_error_hook
from pkgfront.home import create_home_router, load_template
from pkgfront.registry.engine import create_http_client, create_request_handler
from pkgfront.reporting import CrashReporter, NullCrashReporter
from pkgfront.static import StaticAssetStage
from pkgfront.stats import StatsFetcher, create_stats_fetcher
from pkgfront.utils.logger import get_logger
from pkgfront.utils.requestlog import RequestLogMiddleware

logger = get_logger(__name__)


def _is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def create_app(
    config: ServerConfig,
    *,
    stats_fetcher: Optional[StatsFetcher] = None,
    delegate: Optional[ASGIApp] = None,
    crash_reporter: Optional[CrashReporter] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Create the pkgfront application for ``config``.

    The home page template is read here, once; a missing or malformed
    template raises TemplateError before the server ever listens.

    Args:
        config:         Immutable server configuration.
        stats_fetcher:  Awaitable stats source; Cloudflare or null by environment.
        delegate:       ASGI app for unmatched requests; registry handler by default.
        crash_reporter: Receives failures seen by the error hook; no-op by default.
        http_client:    Shared outbound client for the default collaborators.
                        Created (and closed on shutdown) here when omitted.
    """
    template = load_template(config.public_dir)

    owns_client = http_client is None
    client = http_client if http_client is not None else create_http_client()

    if stats_fetcher is None:
        stats_fetcher = create_stats_fetcher(client)
    if delegate is None:
        delegate = create_request_handler(config, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "pkgfront starting up",
            server_id=config.id,
            public_dir=config.public_dir,
            timeout_ms=config.timeout,
            max_age=config.max_age,
        )
        yield
        if owns_client:
            try:
                await client.aclose()
                logger.info("HTTP client closed")
            except Exception as exc:
                logger.warning("HTTP client close error (non-fatal)", error=str(exc))
        logger.info("pkgfront shutdown complete")

    application = FastAPI(
        title="pkgfront",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.config = config

    # Stage 1: error hook. Starlette keeps the handler for Exception in
    # ServerErrorMiddleware, outside every other middleware and route.
    install_error_hook(application, crash_reporter or NullCrashReporter())

    # Stage 2: CORS. In Starlette the LAST-added middleware is OUTERMOST,
    # so request logging (added after) wraps CORS.
    application.add_middleware(PermissiveCORSMiddleware)

    log_ids = bool(os.getenv("LOG_IDS"))
    if not _is_production() or log_ids:
        application.add_middleware(RequestLogMiddleware, log_ids=log_ids)

    # Stage 3: home page. Registered before the mount so it wins for GET /.
    application.include_router(create_home_router(template, stats_fetcher))

    # Stages 4 + 5: static assets, falling through to the delegate.
    application.mount(
        "/",
        StaticAssetStage(config.public_dir, config.max_age_seconds, fallthrough=delegate),
        name="static",
    )

    return application
