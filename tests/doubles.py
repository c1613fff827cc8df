"""Test doubles for the pipeline's external collaborators."""

from __future__ import annotations

from typing import Any

from starlette.responses import PlainTextResponse
from starlette.types import Receive, Scope, Send


class RecordingDelegate:
    """ASGI delegate double: records (method, path) and answers with a fixed body."""

    def __init__(self, status_code: int = 200, body: str = "delegated") -> None:
        self.calls: list[tuple[str, str]] = []
        self.status_code = status_code
        self.body = body

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.calls.append((scope["method"], scope["path"]))
        response = PlainTextResponse(self.body, status_code=self.status_code)
        await response(scope, receive, send)


class RecordingReporter:
    def __init__(self) -> None:
        self.captured: list[BaseException] = []

    def capture_exception(self, exc: BaseException) -> None:
        self.captured.append(exc)


class FailingReporter:
    def capture_exception(self, exc: BaseException) -> None:
        raise RuntimeError("reporter is down")


class StaticStats:
    """Stats fetcher double returning a fixed value and counting calls."""

    def __init__(self, result: Any) -> None:
        self.result = result
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        return self.result


class BrokenStats:
    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or ConnectionError("stats backend unreachable")
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        raise self.exc
