"""Root test configuration for pkgfront.

Fixtures:
  public_dir    — temporary static directory with a valid index.html template
  server_config — ServerConfig pointing at public_dir, deadline disabled

Collaborator doubles (delegate, stats, crash reporter) live in
tests/doubles.py. APP_ENV is forced to "production" so request logging
stays quiet unless a test opts in.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgfront.config import ServerConfig

TEMPLATE = (
    "<!DOCTYPE html><html><head><title>t</title></head>"
    "<body><script>window.serverData = __SERVER_DATA__</script></body></html>"
)


@pytest.fixture(autouse=True)
def quiet_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Production mode, no log ids, no external credentials."""
    monkeypatch.setenv("APP_ENV", "production")
    for name in ("LOG_IDS", "SENTRY_DSN", "CLOUDFLARE_EMAIL", "CLOUDFLARE_KEY", "CLOUDFLARE_ZONE_ID"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "public"
    directory.mkdir()
    (directory / "index.html").write_text(TEMPLATE, encoding="utf-8")
    (directory / "main.css").write_text("body { color: red; }\n", encoding="utf-8")
    (directory / "img").mkdir()
    (directory / "img" / "logo.svg").write_text("<svg></svg>", encoding="utf-8")
    return directory


@pytest.fixture
def server_config(public_dir: Path) -> ServerConfig:
    return ServerConfig(port=0, host="127.0.0.1", public_dir=str(public_dir), timeout=0, max_age="365d")
