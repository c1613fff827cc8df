"""Per-connection deadline enforcement for pkgfront.

Hosting platforms kill requests that take longer than ~30 seconds. To stay
ahead of that, every accepted connection gets an inactivity timer. When
the timer fires, a complete minimal HTTP response is written straight onto
the socket and the socket is closed:

    HTTP/1.1 503 Service Unavailable
    Date: <RFC 1123, GMT>
    Content-Type: text/plain
    Content-Length: <len(message)>
    Connection: close

    Timeout of <N>ms exceeded

The bytes are built here, not by the ASGI app or uvicorn's response
machinery: when the timer fires, the request pipeline may be stuck, so the
write only relies on the transport. The timer restarts on any inbound data
or outbound write, is paused once a response completes (until the next
request arrives) and is cancelled when the connection is lost. An idle
keep-alive connection is left to uvicorn's keep-alive timeout.

A handler still running when the deadline fires keeps running; uvicorn
marks its cycle disconnected and whatever it sends afterwards is dropped.

Wiring (in pkgfront/server.py):
    uvicorn.Config(app, http=deadline_protocol(config.timeout), ...)
"""

from __future__ import annotations

import asyncio
from email.utils import formatdate
from typing import Any, Optional

from uvicorn.protocols.http.h11_impl import H11Protocol

from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)


def timeout_message(timeout_ms: int) -> str:
    return f"Timeout of {timeout_ms}ms exceeded"


def build_timeout_response(timeout_ms: int, now: Optional[float] = None) -> bytes:
    """Serialize the 503 timeout response.

    Args:
        timeout_ms: Configured timeout, echoed in the body.
        now:        Epoch seconds for the Date header (current time if None).
    """
    body = timeout_message(timeout_ms).encode("utf-8")
    lines = [
        "HTTP/1.1 503 Service Unavailable",
        f"Date: {formatdate(now, usegmt=True)}",
        "Content-Type: text/plain",
        f"Content-Length: {len(body)}",
        "Connection: close",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("latin-1") + body


class DeadlineTimer:
    """Inactivity timer bound to one transport.

    ``touch()`` restarts the countdown, ``cancel()`` stops it for good. On
    expiry the timeout response is written and the transport closed, once.
    """

    def __init__(
        self,
        transport: asyncio.BaseTransport,
        timeout_ms: int,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.transport = transport
        self.timeout_ms = timeout_ms
        self.loop = loop or asyncio.get_running_loop()
        self.fired = False
        self.cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = None

    def start(self) -> None:
        self.touch()

    def touch(self) -> None:
        if self.fired or self.cancelled:
            return
        if self._handle is not None:
            self._handle.cancel()
        self._handle = self.loop.call_later(self.timeout_ms / 1000, self.fire)

    def pause(self) -> None:
        """Stop the countdown until the next touch()."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def fire(self) -> None:
        if self.fired or self.cancelled:
            return
        self.fired = True
        self._handle = None

        if self.transport.is_closing():
            return

        logger.warning(
            "connection_deadline_exceeded",
            timeout_ms=self.timeout_ms,
            peer=self.transport.get_extra_info("peername"),
        )
        self.transport.write(build_timeout_response(self.timeout_ms))  # type: ignore[attr-defined]
        self.transport.close()


class WatchedTransport:
    """Transport proxy that reports writes to a DeadlineTimer.

    Once the timer has fired, the connection belongs to the timeout
    response: later writes from the protocol are dropped.
    """

    def __init__(self, transport: asyncio.Transport, timer: DeadlineTimer) -> None:
        self._transport = transport
        self._timer = timer

    def write(self, data: bytes) -> None:
        if self._timer.fired:
            return
        self._timer.touch()
        self._transport.write(data)

    def writelines(self, list_of_data: Any) -> None:
        for data in list_of_data:
            self.write(data)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._transport, name)


class DeadlineH11Protocol(H11Protocol):
    """uvicorn h11 protocol with a per-connection inactivity deadline.

    Not used directly: deadline_protocol() creates a subclass with
    ``timeout_ms`` set.
    """

    timeout_ms: int = 0

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        self.deadline = DeadlineTimer(transport, self.timeout_ms, loop=self.loop)
        super().connection_made(WatchedTransport(transport, self.deadline))  # type: ignore[arg-type]
        self.deadline.start()

    def data_received(self, data: bytes) -> None:
        self.deadline.touch()
        super().data_received(data)

    def on_response_complete(self) -> None:
        self.deadline.pause()
        super().on_response_complete()
        # A pipelined request may have started inside the parent call.
        if self.cycle is not None and not self.cycle.response_complete:
            self.deadline.touch()

    def connection_lost(self, exc: Exception | None) -> None:
        self.deadline.cancel()
        super().connection_lost(exc)


def deadline_protocol(timeout_ms: int) -> type[H11Protocol]:
    """Return the HTTP protocol class uvicorn should use.

    A zero or falsy ``timeout_ms`` disables enforcement: plain H11Protocol.
    """
    if not timeout_ms:
        return H11Protocol
    return type("DeadlineH11Protocol", (DeadlineH11Protocol,), {"timeout_ms": int(timeout_ms)})
