"""Meta Graph API HTTP client.

GET requests with a per-call timeout and bounded exponential backoff on
rate limiting, transient 5xx responses and timeouts.
"""

import asyncio
import logging
from typing import Optional

import httpx

from services.exceptions import PlatformAPIError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class GraphAPIClient:
    """Thin async wrapper around httpx for Graph API reads."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 20.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def get(self, path_or_url: str, params: Optional[dict] = None) -> dict:
        """GET a Graph API path (or an absolute paging URL) and return the JSON body."""
        if path_or_url.startswith("http"):
            url = path_or_url
        else:
            url = f"{self.base_url}/{path_or_url.lstrip('/')}"

        async with self._client() as client:
            for attempt in range(self.max_retries):
                last_attempt = attempt == self.max_retries - 1
                try:
                    response = await client.get(url, params=params)
                except httpx.TimeoutException as e:
                    if last_attempt:
                        raise PlatformAPIError(f"Graph API timeout: {url}") from e
                    await self._backoff(attempt, "timeout")
                    continue
                except httpx.HTTPError as e:
                    raise PlatformAPIError(f"Graph API request failed: {e}") from e

                if response.status_code == 200:
                    return response.json()

                if response.status_code in RETRYABLE_STATUS and not last_attempt:
                    await self._backoff(attempt, f"status {response.status_code}")
                    continue

                message = _error_message(response)
                logger.warning(
                    f"Graph API error: {response.status_code} - {response.text}"
                )
                raise PlatformAPIError(
                    f"Graph API error: {message}",
                    status_code=response.status_code,
                    body=response.text,
                )

        raise PlatformAPIError(f"Graph API request exhausted retries: {url}")

    async def _backoff(self, attempt: int, reason: str) -> None:
        wait_time = self.backoff_base * (2 ** attempt)
        logger.warning(
            f"Graph API request failed ({reason}). Retrying in {wait_time}s "
            f"(attempt {attempt + 1}/{self.max_retries})"
        )
        await asyncio.sleep(wait_time)

    async def get_paginated(
        self, path: str, params: Optional[dict] = None, limit: int = 100
    ) -> list[dict]:
        """Follow cursor pagination (paging.next) until ``limit`` items are collected."""
        items: list[dict] = []
        url: Optional[str] = path
        page_params: Optional[dict] = params

        while url and len(items) < limit:
            data = await self.get(url, page_params)
            items.extend(data.get("data", []))
            url = data.get("paging", {}).get("next")
            page_params = None

        return items[:limit]


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return response.text
