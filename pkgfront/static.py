"""Static asset stage for pkgfront.

Serves files from the configured public directory with
``Cache-Control: public, max-age=<max_age>`` and the conditional-request
handling (ETag / Last-Modified → 304) of Starlette's StaticFiles.

The stage declines, passing the request to ``fallthrough`` (the registry
delegate), when:
  - the method is not GET or HEAD
  - no regular file exists at the requested path (directories included)
"""

from __future__ import annotations

from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import ASGIApp, Receive, Scope, Send

from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)


class CachedStaticFiles(StaticFiles):
    """StaticFiles that stamps every file response with a freshness directive."""

    def __init__(self, *, directory: str, max_age_seconds: int) -> None:
        super().__init__(directory=directory, html=False, check_dir=True)
        self.cache_control = f"public, max-age={max_age_seconds}"

    def file_response(self, full_path, stat_result, scope, status_code: int = 200) -> Response:  # type: ignore[override]
        response = super().file_response(full_path, stat_result, scope, status_code)
        response.headers["Cache-Control"] = self.cache_control
        return response


class StaticAssetStage:
    """ASGI stage: serve a matching static file or fall through.

    Registration (in create_app() in pkgfront/main.py):
        application.mount("/", StaticAssetStage(directory, max_age, delegate))

    The mount sits after the home route, so ``GET /`` never reaches it.
    """

    def __init__(self, directory: str, max_age_seconds: int, fallthrough: ASGIApp) -> None:
        self.files = CachedStaticFiles(directory=directory, max_age_seconds=max_age_seconds)
        self.fallthrough = fallthrough

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] not in ("GET", "HEAD"):
            await self.fallthrough(scope, receive, send)
            return

        if not self.files.config_checked:
            await self.files.check_config()
            self.files.config_checked = True

        try:
            response = await self.files.get_response(self.files.get_path(scope), scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                raise
            logger.debug("static_miss", path=scope["path"])
            await self.fallthrough(scope, receive, send)
            return

        await response(scope, receive, send)
