"""Permissive cross-origin headers for every response.

Starlette's CORSMiddleware only decorates requests that carry an ``Origin``
header. The CDN's assets are public, so ``Access-Control-Allow-Origin: *``
is added to every response, with or without ``Origin``. Preflight handling
is left to the parent class.
"""

from __future__ import annotations

from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

ALLOWED_METHODS: tuple[str, ...] = ("GET", "HEAD", "PUT", "PATCH", "POST", "DELETE")


class PermissiveCORSMiddleware(CORSMiddleware):
    """Allow any origin, any method in ALLOWED_METHODS and any request header."""

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(
            app,
            allow_origins=["*"],
            allow_methods=list(ALLOWED_METHODS),
            allow_headers=["*"],
            allow_credentials=False,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or "origin" in Headers(scope=scope):
            await super().__call__(scope, receive, send)
            return

        async def send_with_origin(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers.setdefault("Access-Control-Allow-Origin", "*")
            await send(message)

        await self.app(scope, receive, send_with_origin)
