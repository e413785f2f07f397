"""SerpAPI search adapter.

Two modes: ``commerce`` (Google Shopping engine) and ``web`` (Google web
engine, which also returns inline shopping blocks and organic links).
Callers get the raw provider JSON; normalization happens elsewhere.

No retries here: a failed call raises and the cascade moves on to a
different query.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from skinrank.errors import ProviderSoftError, ProviderTransportError
from skinrank.models.contracts import SearchMode

log = structlog.get_logger("skinrank.serpapi")

SERPAPI_BASE_URL = "https://serpapi.com/search.json"
DEFAULT_TIMEOUT = 10.0

_ENGINES: dict[SearchMode, str] = {
    "commerce": "google_shopping",
    "web": "google",
}

_GOOGLE_DOMAINS: dict[str, str] = {
    "us": "google.com",
    "gb": "google.co.uk",
    "in": "google.co.in",
    "au": "google.com.au",
    "ca": "google.ca",
}


def google_domain(region: str) -> str:
    return _GOOGLE_DOMAINS.get(region.lower(), f"google.{region.lower()}")


def build_params(query: str, mode: SearchMode, region: str, api_key: str) -> dict[str, str]:
    """Build SerpAPI query parameters for one search."""
    params = {
        "engine": _ENGINES[mode],
        "q": query,
        "gl": region.lower(),
        "hl": "en",
        "google_domain": google_domain(region),
        "api_key": api_key,
    }
    if mode == "web":
        params["num"] = "20"
    return params


async def search_serpapi(
    http_client: httpx.AsyncClient,
    query: str,
    mode: SearchMode,
    region: str,
    api_key: str,
    *,
    base_url: str = SERPAPI_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict[str, Any]:
    """Run a single SerpAPI search and return the raw JSON payload.

    Raises ProviderTransportError on network failures, timeouts, and HTTP
    error statuses. Raises ProviderSoftError when the provider answers but
    reports an error (quota, no results, unparseable body).
    """
    params = build_params(query, mode, region, api_key)
    try:
        resp = await http_client.get(base_url, params=params, timeout=timeout)
    except httpx.TimeoutException as exc:
        log.warning("serpapi_timeout", query=query[:80], mode=mode)
        raise ProviderTransportError(f"Timeout searching {mode}", query=query) from exc
    except httpx.RequestError as exc:
        log.warning("serpapi_network_error", query=query[:80], error=type(exc).__name__)
        raise ProviderTransportError(
            f"Network error searching {mode}: {type(exc).__name__}", query=query
        ) from exc

    if resp.status_code == 429:
        raise ProviderSoftError("SerpAPI quota exhausted (429)", query=query)
    if resp.status_code >= 400:
        raise ProviderTransportError(
            f"HTTP {resp.status_code} from SerpAPI",
            query=query,
            status_code=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise ProviderSoftError("SerpAPI returned a non-JSON body", query=query) from exc
    if not isinstance(data, dict):
        raise ProviderSoftError("SerpAPI returned an unexpected payload", query=query)

    error = data.get("error")
    if error:
        raise ProviderSoftError(f"SerpAPI error: {str(error)[:200]}", query=query)

    return data
