"""Request logging middleware for pkgfront.

Development mode logs every request (method, path, status, duration).
With LOG_IDS the upstream request id (``x-request-id``) and Cloudflare's
``cf-ray`` are bound into the log context as well.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from pkgfront.utils.logger import bind_request_context, clear_request_context, get_logger

logger = get_logger(__name__)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """Log one structured line per request.

    Registration (in create_app() in pkgfront/main.py):
        application.add_middleware(RequestLogMiddleware, log_ids=...)
    """

    def __init__(self, app: ASGIApp, log_ids: bool = False) -> None:
        super().__init__(app)
        self.log_ids = log_ids

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        context: dict[str, str | None] = {}
        if self.log_ids:
            context["request_id"] = request.headers.get("x-request-id")
            context["cf_ray"] = request.headers.get("cf-ray")
            bind_request_context(**context)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.warning(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error_type=type(exc).__name__,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                **context,
            )
            raise
        finally:
            if self.log_ids:
                clear_request_context()

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            **context,
        )
        return response
