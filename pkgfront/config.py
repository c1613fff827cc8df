"""Configuration assembly for pkgfront.

A ``ServerConfig`` is built once at startup: defaults are derived from the
process environment (with literal fallbacks from ``pkgfront.constants``)
and a caller-supplied partial mapping is overlaid on top of them.

Environment inputs:
  PORT               — listen port (invalid or empty → 5000)
  HOST               — bind address (default 0.0.0.0)
  PUBLIC_DIR         — static asset directory holding index.html
  TIMEOUT            — per-connection inactivity budget in ms (0 disables)
  MAX_AGE            — static freshness directive, e.g. "365d"
  REGISTRY_URL       — npm registry used by the registry delegate
  REDIRECT_TTL       — cache lifetime (seconds) of version redirects
  DISABLE_INDEX      — any non-empty value turns directory listings off
  PACKAGE_BLOCKLIST  — path to a YAML file listing blocked package names

The merge is shallow and last-value-wins. Registry fields are never read
by the pipeline itself; they are passed through to the delegate untouched.
"""

from __future__ import annotations

import dataclasses
import os
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import yaml

from pkgfront.constants import (
    DEFAULT_HOST,
    DEFAULT_MAX_AGE,
    DEFAULT_PORT,
    DEFAULT_PUBLIC_DIR,
    DEFAULT_REDIRECT_TTL,
    DEFAULT_REGISTRY_URL,
    DEFAULT_SERVER_ID,
    DEFAULT_TIMEOUT_MS,
)
from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)


class ConfigError(ValueError):
    """Raised for configuration that cannot be assembled into a ServerConfig."""


# ─── Durations ───────────────────────────────────────────────────────────────

_DURATION_RE = re.compile(
    r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h|d|w|y)?\s*$",
    re.IGNORECASE,
)

_UNIT_MS: dict[str, float] = {
    "ms": 1,
    "s": 1_000,
    "m": 60_000,
    "h": 3_600_000,
    "d": 86_400_000,
    "w": 604_800_000,
    "y": 31_557_600_000,
}


def parse_duration_ms(value: Any) -> int:
    """Convert a duration such as ``"365d"``, ``"2h"`` or ``1500`` to milliseconds.

    Bare numbers are milliseconds. Raises ConfigError for anything else.
    """
    if isinstance(value, bool):
        raise ConfigError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ConfigError(f"Invalid duration: {value!r}")
        return int(value)

    match = _DURATION_RE.match(str(value))
    if match is None:
        raise ConfigError(f"Invalid duration: {value!r}")
    unit = (match.group("unit") or "ms").lower()
    return int(float(match.group("value")) * _UNIT_MS[unit])


def max_age_seconds(value: Any) -> int:
    """Whole seconds for a ``Cache-Control: max-age`` directive."""
    return parse_duration_ms(value) // 1000


# ─── ServerConfig ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ServerConfig:
    """Immutable server configuration shared by every request.

    ``registry_url``, ``redirect_ttl``, ``auto_index`` and ``blocklist`` are
    consumed only by the registry delegate.
    """

    id: int = DEFAULT_SERVER_ID
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    public_dir: str = DEFAULT_PUBLIC_DIR
    timeout: int = DEFAULT_TIMEOUT_MS
    max_age: str = DEFAULT_MAX_AGE

    registry_url: str = DEFAULT_REGISTRY_URL
    redirect_ttl: int = DEFAULT_REDIRECT_TTL
    auto_index: bool = True
    blocklist: tuple[str, ...] = ()

    @property
    def max_age_seconds(self) -> int:
        return max_age_seconds(self.max_age)

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def _int_or_default(raw: Optional[str], default: int) -> int:
    # Empty or non-numeric values fall back, an explicit "0" does not.
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip(), 10)
    except ValueError:
        logger.warning("Ignoring non-integer environment value", value=raw, default=default)
        return default


def check_timeout(value: Any) -> int:
    """Validate a per-connection timeout in ms; 0 disables the deadline."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError(f"timeout must be a non-negative number of milliseconds, got {value!r}")
    return value


def load_blocklist(path: str) -> tuple[str, ...]:
    """Load blocked package names from a YAML file.

    Accepts a top-level list or a mapping with a ``blocklist`` key.

    Raises:
        ConfigError: On unreadable files, YAML syntax errors or a wrong shape.
    """
    try:
        with open(os.path.expanduser(path)) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse block list {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Could not read block list {path}: {exc}") from exc

    if raw is None:
        return ()
    if isinstance(raw, dict):
        raw = raw.get("blocklist") or []
    if not isinstance(raw, list) or not all(isinstance(name, str) for name in raw):
        raise ConfigError(f"Block list {path} must be a list of package names")

    logger.info("Block list loaded", path=path, count=len(raw))
    return tuple(raw)


def default_server_config(environ: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build the default ServerConfig from environment-style inputs."""
    env = os.environ if environ is None else environ

    blocklist_path = env.get("PACKAGE_BLOCKLIST")
    blocklist = load_blocklist(blocklist_path) if blocklist_path else ()

    return ServerConfig(
        id=DEFAULT_SERVER_ID,
        host=env.get("HOST") or DEFAULT_HOST,
        port=_int_or_default(env.get("PORT"), DEFAULT_PORT),
        public_dir=env.get("PUBLIC_DIR") or DEFAULT_PUBLIC_DIR,
        timeout=check_timeout(_int_or_default(env.get("TIMEOUT"), DEFAULT_TIMEOUT_MS)),
        max_age=env.get("MAX_AGE") or DEFAULT_MAX_AGE,
        registry_url=(env.get("REGISTRY_URL") or DEFAULT_REGISTRY_URL).rstrip("/"),
        redirect_ttl=_int_or_default(env.get("REDIRECT_TTL"), DEFAULT_REDIRECT_TTL),
        auto_index=not env.get("DISABLE_INDEX"),
        blocklist=blocklist,
    )


def merge_config(
    overrides: Optional[Mapping[str, Any]] = None,
    defaults: Optional[ServerConfig] = None,
) -> ServerConfig:
    """Overlay ``overrides`` onto ``defaults`` (shallow, last value wins).

    Args:
        overrides: Partial mapping of ServerConfig field names to values.
        defaults:  Base config; ``default_server_config()`` when omitted.

    Raises:
        ConfigError: If ``overrides`` names a field ServerConfig does not have,
                     ``max_age`` is not a valid duration or ``timeout`` is
                     negative.
    """
    base = defaults if defaults is not None else default_server_config()
    if not overrides:
        return base

    known = {f.name for f in dataclasses.fields(ServerConfig)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ConfigError(f"Unknown server config fields: {unknown}")

    values = dict(overrides)
    if "blocklist" in values:
        values["blocklist"] = tuple(values["blocklist"] or ())

    config = dataclasses.replace(base, **values)
    # Fail at startup, not on the first static request.
    parse_duration_ms(config.max_age)
    check_timeout(config.timeout)
    return config
