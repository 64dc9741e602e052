"""httpx-based fetch functions for JSON endpoints."""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from repocache.data.config import FetchFunction

logger = logging.getLogger(__name__)


def json_fetcher(
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, Any] | None = None,
    timeout: float = 30.0,
) -> FetchFunction:
    """Build a zero-argument fetch function that GETs a JSON document.

    Usage:
        repo = Repository("weather", json_fetcher("https://example.com/weather"))

    Args:
        url: Endpoint to request.
        headers: Extra request headers (e.g. an API key).
        params: Query string parameters.
        timeout: Request timeout in seconds.

    Returns:
        Async callable returning the decoded JSON body.
    """

    async def fetch() -> Any:
        """Fetch and decode the document.

        Raises:
            httpx.HTTPError: If the HTTP request fails.
        """
        async with httpx.AsyncClient(headers=dict(headers or {}), timeout=timeout) as client:
            response = await client.get(url, params=dict(params or {}))
            response.raise_for_status()
            logger.debug(f"Fetched {url} ({response.status_code})")
            return response.json()

    return fetch
