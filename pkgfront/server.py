"""Listener for pkgfront: uvicorn server with the deadline-wrapped protocol.

    server = create_server(config)          # uvicorn.Server, not yet bound
    await serve(server, config)             # bind, announce, run until exit
    start_server({"port": 8080})            # merge config + build app + run

The per-connection deadline is installed through uvicorn's ``http``
option (see pkgfront/deadline.py); a zero ``config.timeout`` leaves the
plain h11 protocol in place.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import uvicorn
from fastapi import FastAPI

from pkgfront.config import ServerConfig, merge_config
from pkgfront.deadline import deadline_protocol
from pkgfront.main import create_app
from pkgfront.reporting import create_crash_reporter
from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)

# Keep-alive idle timeout (seconds); uvicorn's default.
UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def create_server(
    config: ServerConfig,
    app: Optional[FastAPI] = None,
    **uvicorn_options: Any,
) -> uvicorn.Server:
    """Build (but do not start) the uvicorn server for ``config``.

    Extra keyword arguments are passed to ``uvicorn.Config``.
    """
    if app is None:
        app = create_app(config, crash_reporter=create_crash_reporter())

    options: dict[str, Any] = {
        "host": config.host,
        "port": config.port,
        "http": deadline_protocol(config.timeout),
        "server_header": False,
        "timeout_keep_alive": UVICORN_TIMEOUT_KEEP_ALIVE,
        "log_config": None,
    }
    options.update(uvicorn_options)

    if not config.timeout:
        logger.info("Connection deadline disabled", timeout_ms=config.timeout)

    return uvicorn.Server(uvicorn.Config(app, **options))


def bound_port(server: uvicorn.Server) -> Optional[int]:
    """Actual listening port (useful when configured with port 0)."""
    for listener in getattr(server, "servers", []):
        for sock in listener.sockets:
            return sock.getsockname()[1]
    return None


async def serve(server: uvicorn.Server, config: ServerConfig) -> None:
    """Run ``server`` and log the startup notice once it is listening."""
    task = asyncio.create_task(server.serve())
    while not server.started and not task.done():
        await asyncio.sleep(0.05)

    if server.started:
        logger.info(
            f"Server #{config.id} listening on port {bound_port(server) or config.port}, Ctrl+C to stop",
            server_id=config.id,
            port=bound_port(server) or config.port,
        )
    await task


def start_server(overrides: Optional[Mapping[str, Any]] = None) -> None:
    """Merge ``overrides`` onto the environment defaults and run the server."""
    config = merge_config(overrides)
    server = create_server(config)
    asyncio.run(serve(server, config))
