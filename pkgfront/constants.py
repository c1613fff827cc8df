"""Shared constants for pkgfront.

Literal fallbacks for configuration, cache directives and pool sizes.
Other modules import these rather than repeating the values.
"""

# ─── Configuration fallbacks ─────────────────────────────────────────────────

DEFAULT_SERVER_ID: int = 1
DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 5000
DEFAULT_PUBLIC_DIR: str = "public"

# Per-connection inactivity budget (milliseconds). Hosting platforms kill
# requests at 30s; the connection must be closed well before that.
DEFAULT_TIMEOUT_MS: int = 20_000

# Freshness directive for static assets ("365d" style duration string).
DEFAULT_MAX_AGE: str = "365d"

DEFAULT_REGISTRY_URL: str = "https://registry.npmjs.org"

# Cache lifetime (seconds) of version-resolution redirects.
DEFAULT_REDIRECT_TTL: int = 500

# ─── Home page ───────────────────────────────────────────────────────────────

TEMPLATE_FILENAME: str = "index.html"

# Marker inserted into index.html by the front-end build.
SERVER_DATA_TOKEN: str = "__SERVER_DATA__"

HOME_CACHE_CONTROL: str = "public, max-age=60"

# ─── Error responses ─────────────────────────────────────────────────────────

INTERNAL_ERROR_BODY: str = "<p>Internal Server Error</p>"

# ─── Outbound HTTP client ────────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0  # seconds
UPSTREAM_TIMEOUT: float = 15.0  # seconds, below DEFAULT_TIMEOUT_MS

# ─── Cloudflare analytics ────────────────────────────────────────────────────

CLOUDFLARE_API_URL: str = "https://api.cloudflare.com/client/v4"

# Window of the dashboard query, in minutes relative to now (30 days).
CLOUDFLARE_STATS_SINCE: int = -43_200
