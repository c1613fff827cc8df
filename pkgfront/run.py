"""Command-line entry point for pkgfront.

Usage:
    python -m pkgfront.run
    pkgfront                    # via pyproject.toml [project.scripts]

Logging is configured from the environment before anything else:
  DEBUG=true       → DEBUG level
  LOG_LEVEL        → explicit level (default INFO)
  JSON_LOGS        → JSON lines (default true in production, console otherwise)
"""

from __future__ import annotations

import os

from pkgfront.config import ConfigError
from pkgfront.home import TemplateError
from pkgfront.server import start_server
from pkgfront.utils.logger import configure_logging, get_logger


def _configure_logging_from_env() -> None:
    debug = os.getenv("DEBUG", "false").lower() == "true"
    production = os.getenv("APP_ENV", "development").lower() == "production"
    log_level = os.getenv("LOG_LEVEL", "DEBUG" if debug else "INFO")
    json_logs = os.getenv("JSON_LOGS", "true" if production else "false").lower() == "true"
    configure_logging(log_level=log_level, json_output=json_logs)


def main() -> None:
    """Start pkgfront with configuration taken from the environment.

    Raises:
        SystemExit(1): On configuration or template errors.
    """
    _configure_logging_from_env()
    logger = get_logger(__name__)

    try:
        start_server()
    except (ConfigError, TemplateError) as exc:
        logger.error("Startup refused", error=str(exc), error_type=type(exc).__name__)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
