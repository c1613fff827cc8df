"""Error hook for the pkgfront pipeline.

Every failure not handled by a stage ends up here. The hook is installed as
Starlette's server-error handler, which lives in the outermost middleware
(ServerErrorMiddleware), so it observes failures from all stages: the home
renderer, the static stage and the delegate.

On failure:
  1. the traceback is logged (never sent to the client)
  2. the failure is passed to the injected CrashReporter
  3. a generic 500 page is returned; ServerErrorMiddleware sends it only if
     no response has started yet, then re-raises so the server's own error
     log sees the failure too
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from pkgfront.constants import INTERNAL_ERROR_BODY
from pkgfront.reporting import CrashReporter, NullCrashReporter
from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)


def install_error_hook(application: FastAPI, crash_reporter: CrashReporter | None = None) -> None:
    """Register the generic 500 handler on ``application``."""
    reporter = crash_reporter or NullCrashReporter()

    async def unhandled_exception_handler(request: Request, exc: Exception) -> HTMLResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            method=request.method,
            path=str(request.url.path),
            exc_info=exc,
        )

        try:
            reporter.capture_exception(exc)
        except Exception as report_exc:  # noqa: BLE001
            logger.warning(
                "Crash reporter failed (non-fatal)",
                error=str(report_exc),
                error_type=type(report_exc).__name__,
            )

        return HTMLResponse(INTERNAL_ERROR_BODY, status_code=500)

    application.add_exception_handler(Exception, unhandled_exception_handler)
