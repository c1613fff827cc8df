"""Home page rendering for pkgfront.

The HTML template (``<public_dir>/index.html``) is read once, when the app
is created, and is never modified afterwards. Each request for ``/``:

  1. awaits the stats fetcher exactly once
  2. replaces the single ``__SERVER_DATA__`` token with
     ``{"cloudflareStats": <stats>}`` encoded as compact JSON
  3. responds 200 with ``Cache-Control: public, max-age=60``

A failing fetch is not caught here. It propagates to the server-error
handler, which sends the one and only response for the request.
"""

from __future__ import annotations

import json
import os
from typing import Any

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from pkgfront.constants import HOME_CACHE_CONTROL, SERVER_DATA_TOKEN, TEMPLATE_FILENAME
from pkgfront.stats import StatsFetcher
from pkgfront.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)


class TemplateError(ValueError):
    """The home page template is missing or malformed."""


def load_template(public_dir: str) -> str:
    """Read ``index.html`` from ``public_dir`` and check its token count.

    Raises:
        TemplateError: If the file cannot be read or does not contain
                       exactly one substitution token.
    """
    path = os.path.join(public_dir, TEMPLATE_FILENAME)
    try:
        with open(path, encoding="utf-8") as fh:
            html = fh.read()
    except OSError as exc:
        raise TemplateError(f"Could not read home page template {path}: {exc}") from exc

    count = html.count(SERVER_DATA_TOKEN)
    if count != 1:
        raise TemplateError(
            f"Template {path} must contain {SERVER_DATA_TOKEN} exactly once (found {count})"
        )

    logger.info("Home page template loaded", path=path, size=len(html))
    return html


def encode_server_data(stats: Any) -> str:
    # Compact separators match what browsers' JSON.stringify produces.
    return json.dumps({"cloudflareStats": stats}, separators=(",", ":"))


def render_home_page(template: str, stats: Any) -> str:
    """Return a fresh page with the token replaced by the encoded stats."""
    return template.replace(SERVER_DATA_TOKEN, encode_server_data(stats), 1)


def create_home_router(template: str, fetch_stats: StatsFetcher) -> APIRouter:
    """Router with the single ``GET /`` home page route."""
    router = APIRouter(tags=["home"])

    @router.api_route("/", methods=["GET", "HEAD"], response_class=HTMLResponse, include_in_schema=False)
    async def home() -> HTMLResponse:
        with PerformanceLogger("fetch_stats", logger=logger):
            stats = await fetch_stats()

        return HTMLResponse(
            content=render_home_page(template, stats),
            headers={"Cache-Control": HOME_CACHE_CONTROL},
        )

    return router
