"""Async HTTP client used for outbound calls (the email API)."""

from typing import Any, Optional

import httpx


class HttpClient:
    """httpx.AsyncClient with a per-service timeout and optional User-Agent.

    Created in the app lifespan and closed on shutdown.
    """

    def __init__(self, timeout: float = 5.0, user_agent: Optional[str] = None) -> None:
        headers = {"User-Agent": user_agent} if user_agent else None
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), headers=headers)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
