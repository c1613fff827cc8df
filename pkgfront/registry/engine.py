"""Registry request handler — the pipeline's default delegate.

Receives every request that neither the home page nor the static stage
handled, and resolves it against the npm registry:

  - Only GET / HEAD; anything else → 405.
  - Path must parse as /<name>[@<spec>][/<file>] → otherwise 403.
  - Blocked package names → 403.
  - Package metadata from {registry_url}/{name}:
      registry 404                         → 404
      connect / timeout / protocol / 5xx   → 502
  - Version resolution:
      exact published version              → serve
      dist-tag (default "latest")          → 302 to the pinned URL,
                                             Cache-Control max-age=redirect_ttl
      anything else                        → 404
  - No file path → 302 to the package's main file.
  - Trailing slash → HTML directory index when auto_index, else 404.
  - Files are read from the version tarball and served with the static
    freshness directive (pinned versions never change).

Shared httpx.AsyncClient: created once by create_app() via
create_http_client() and closed in its lifespan. Never per-request.
"""

from __future__ import annotations

import mimetypes
import posixpath
from typing import Any, Optional
from urllib.parse import quote

import httpx
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response
from starlette.types import Receive, Scope, Send

from pkgfront.config import ServerConfig
from pkgfront.constants import (
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    UPSTREAM_TIMEOUT,
)
from pkgfront.registry.tarball import list_directory, read_member, render_index
from pkgfront.registry.urls import PackageURL, parse_package_url
from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)

_UPSTREAM_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
    httpx.HTTPStatusError,
)


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured."""
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(UPSTREAM_TIMEOUT),
        follow_redirects=True,
    )


def _text(status_code: int, message: str, headers: Optional[dict[str, str]] = None) -> Response:
    return PlainTextResponse(message, status_code=status_code, headers=headers)


def resolve_version(packument: dict[str, Any], spec: Optional[str]) -> tuple[Optional[str], bool]:
    """Resolve ``spec`` against package metadata.

    Returns ``(version, exact)``; ``exact`` is True when ``spec`` already
    names a published version. ``(None, False)`` when nothing matches.
    """
    versions = packument.get("versions") or {}
    tags = packument.get("dist-tags") or {}

    if spec is not None and spec in versions:
        return spec, True

    tagged = tags.get(spec or "latest")
    if tagged and tagged in versions:
        return tagged, False

    return None, False


def main_file(manifest: dict[str, Any]) -> str:
    main = posixpath.normpath("/" + (manifest.get("main") or "index.js"))
    if not posixpath.splitext(main)[1]:
        main += ".js"
    return main


class RegistryRequestHandler:
    """ASGI app resolving package URLs against an npm registry."""

    def __init__(self, config: ServerConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client
        self.blocked = frozenset(config.blocklist)
        self.file_cache_control = f"public, max-age={config.max_age_seconds}"
        self.redirect_cache_control = f"public, max-age={config.redirect_ttl}"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await self.handle(request)
        await response(scope, receive, send)

    async def handle(self, request: Request) -> Response:
        if request.method not in ("GET", "HEAD"):
            return _text(405, "Method Not Allowed", headers={"Allow": "GET, HEAD"})

        path = request.scope["path"]
        url = parse_package_url(path)
        if url is None:
            return _text(403, f"Invalid URL: {path}")

        if url.name in self.blocked:
            logger.info("package_blocked", package=url.name)
            return _text(403, f"Package {url.name} is blocked")

        try:
            packument = await self.fetch_package_info(url.name)
        except _UPSTREAM_ERRORS as exc:
            logger.warning(
                "registry_unavailable",
                package=url.name,
                registry=self.config.registry_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return _text(502, "Bad Gateway: package registry unavailable")

        if packument is None:
            return _text(404, f"Cannot find package {url.name}")

        version, exact = resolve_version(packument, url.spec)
        if version is None:
            return _text(404, f"Cannot find package {url.name}@{url.spec}")

        if not exact:
            return self.redirect(url.with_version(version), request)

        manifest = packument["versions"][version]
        if not url.filename:
            return self.redirect(url.with_version(version, main_file(manifest)), request)

        return await self.serve_file(url, version, manifest)

    async def fetch_package_info(self, name: str) -> Optional[dict[str, Any]]:
        """Package metadata from the registry, or None if it does not exist."""
        registry_url = f"{self.config.registry_url}/{quote(name, safe='@')}"
        response = await self.client.get(registry_url, headers={"Accept": "application/json"})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def redirect(self, location: str, request: Request) -> Response:
        if request.url.query:
            location = f"{location}?{request.url.query}"
        return RedirectResponse(
            location,
            status_code=302,
            headers={"Cache-Control": self.redirect_cache_control},
        )

    async def serve_file(self, url: PackageURL, version: str, manifest: dict[str, Any]) -> Response:
        if url.is_directory and not self.config.auto_index:
            return _text(404, f"Cannot find {url.filename} in {url.name}@{version}")

        tarball_url = (manifest.get("dist") or {}).get("tarball")
        if not tarball_url:
            return _text(404, f"Cannot find package {url.name}@{version}")

        try:
            tarball = await self.client.get(tarball_url)
            tarball.raise_for_status()
        except _UPSTREAM_ERRORS as exc:
            logger.warning(
                "tarball_unavailable",
                package=url.name,
                version=version,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return _text(502, "Bad Gateway: package tarball unavailable")

        if url.is_directory:
            entries = await run_in_threadpool(list_directory, tarball.content, url.filename)
            if entries is None:
                return _text(404, f"Cannot find {url.filename} in {url.name}@{version}")
            return HTMLResponse(
                render_index(url.name, version, url.filename, entries),
                headers={"Cache-Control": self.file_cache_control},
            )

        content = await run_in_threadpool(read_member, tarball.content, url.filename)
        if content is None:
            return _text(404, f"Cannot find {url.filename} in {url.name}@{version}")

        media_type = mimetypes.guess_type(url.filename)[0] or "text/plain"
        logger.debug("package_file_served", package=url.name, version=version, file=url.filename)
        return Response(
            content,
            media_type=media_type,
            headers={"Cache-Control": self.file_cache_control},
        )


def create_request_handler(config: ServerConfig, client: httpx.AsyncClient) -> RegistryRequestHandler:
    return RegistryRequestHandler(config, client)
