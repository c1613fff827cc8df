"""Statistics sources for the home page.

A stats fetcher is any zero-argument awaitable callable returning a
JSON-serializable value; it raises to signal failure. The home renderer
calls it exactly once per request and never retries.

Implementations:
  CloudflareStatsFetcher — zone analytics from the Cloudflare v4 API
  NullStatsFetcher       — returns None (no credentials configured)

Selection via create_stats_fetcher() from CLOUDFLARE_EMAIL, CLOUDFLARE_KEY
and CLOUDFLARE_ZONE_ID.
"""

from __future__ import annotations

import os
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx

from pkgfront.constants import CLOUDFLARE_API_URL, CLOUDFLARE_STATS_SINCE
from pkgfront.utils.logger import get_logger

logger = get_logger(__name__)

StatsFetcher = Callable[[], Awaitable[Any]]


class StatsFetchError(RuntimeError):
    """The statistics source answered, but not with usable data."""


class CloudflareStatsFetcher:
    """Fetch zone analytics (totals + timeseries) from Cloudflare.

    The shared ``httpx.AsyncClient`` is owned by the caller.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        zone_id: str,
        email: str,
        key: str,
        *,
        since: int = CLOUDFLARE_STATS_SINCE,
        api_url: str = CLOUDFLARE_API_URL,
    ) -> None:
        self._client = client
        self._zone_id = zone_id
        self._headers = {"X-Auth-Email": email, "X-Auth-Key": key}
        self._since = since
        self._api_url = api_url.rstrip("/")

    async def __call__(self) -> Any:
        url = f"{self._api_url}/zones/{self._zone_id}/analytics/dashboard"
        response = await self._client.get(
            url,
            headers=self._headers,
            params={"since": self._since, "continuous": "true"},
        )

        try:
            payload = response.json()
        except ValueError as exc:
            raise StatsFetchError(
                f"Cloudflare returned non-JSON body (HTTP {response.status_code})"
            ) from exc
        if not isinstance(payload, dict):
            raise StatsFetchError("Cloudflare returned an unexpected payload shape")

        if response.is_error or not payload.get("success", False):
            messages = [err.get("message", "") for err in payload.get("errors") or []]
            raise StatsFetchError(
                f"Cloudflare analytics request failed (HTTP {response.status_code}): "
                + ("; ".join(m for m in messages if m) or "unknown error")
            )

        return payload.get("result")


class NullStatsFetcher:
    """No-op fetcher used when Cloudflare credentials are absent."""

    async def __call__(self) -> Any:
        return None


def create_stats_fetcher(
    client: httpx.AsyncClient,
    environ: Optional[Mapping[str, str]] = None,
) -> StatsFetcher:
    """Return a CloudflareStatsFetcher when credentials are configured."""
    env = os.environ if environ is None else environ
    email = env.get("CLOUDFLARE_EMAIL")
    key = env.get("CLOUDFLARE_KEY")
    zone_id = env.get("CLOUDFLARE_ZONE_ID")

    if email and key and zone_id:
        logger.info("stats_fetcher_selected", fetcher="CloudflareStatsFetcher", zone_id=zone_id)
        return CloudflareStatsFetcher(client, zone_id=zone_id, email=email, key=key)

    logger.warning(
        "stats_fetcher_selected",
        fetcher="NullStatsFetcher",
        reason="CLOUDFLARE_EMAIL, CLOUDFLARE_KEY and CLOUDFLARE_ZONE_ID not all set",
    )
    return NullStatsFetcher()
