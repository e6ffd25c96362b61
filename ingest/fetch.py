from __future__ import annotations

import asyncio

import httpx

from ingest.errors import FetchError


DEFAULT_TIMEOUT_SECONDS = 10.0


async def fetch_text(
    client: httpx.AsyncClient,
    *,
    url: str,
    user_agent: str,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """GET ``url`` and return the decoded body.

    The timeout bounds the whole request, not just each socket operation.
    There is no retry here; a failed feed waits for the next scheduled run.
    """
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/json, application/xml, application/rss+xml, text/xml, */*",
    }
    try:
        async with asyncio.timeout(timeout_seconds):
            response = await client.get(
                url, headers=headers, timeout=httpx.Timeout(timeout_seconds)
            )
    except (httpx.TimeoutException, TimeoutError) as e:
        raise FetchError(url, reason="timeout") from e
    except httpx.RequestError as e:
        raise FetchError(url, reason=f"request_error:{e.__class__.__name__}") from e

    if not response.is_success:
        raise FetchError(url, status_code=response.status_code)
    return response.text
