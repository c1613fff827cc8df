"""Crash reporting collaborators.

The error hook forwards every unhandled failure to a CrashReporter. The
reporter is injected into create_app(); nothing is installed process-wide
until a reporter is actually constructed.

Implementations: NullCrashReporter (default), SentryCrashReporter.
Selection via create_crash_reporter() from SENTRY_DSN.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional, Protocol, runtime_checkable

import sentry_sdk

from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class CrashReporter(Protocol):
    """Receives failures that reached the error hook.

    Implementations may raise; the error hook logs and contains it.
    """

    def capture_exception(self, exc: BaseException) -> None:
        ...


class NullCrashReporter:
    """No-op CrashReporter."""

    def capture_exception(self, exc: BaseException) -> None:
        return None


class SentryCrashReporter:
    """CrashReporter backed by sentry-sdk.

    Automatic framework integrations are disabled so that each failure is
    reported once, by the error hook.
    """

    def __init__(self, dsn: str, environment: str = "development") -> None:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            default_integrations=False,
            auto_enabling_integrations=False,
        )
        self.environment = environment

    def capture_exception(self, exc: BaseException) -> None:
        sentry_sdk.capture_exception(exc)


def create_crash_reporter(environ: Optional[Mapping[str, str]] = None) -> CrashReporter:
    """SentryCrashReporter when SENTRY_DSN is set, NullCrashReporter otherwise."""
    env = os.environ if environ is None else environ
    dsn = env.get("SENTRY_DSN")
    if not dsn:
        return NullCrashReporter()

    environment = env.get("APP_ENV") or "development"
    logger.info("crash_reporter_selected", reporter="SentryCrashReporter", environment=environment)
    return SentryCrashReporter(dsn, environment=environment)
