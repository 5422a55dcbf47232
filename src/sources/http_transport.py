"""
HTTP transport for the Steam Web API client.

Thin wrapper around one aiohttp.ClientSession. The session is created
lazily on first use so it binds to the running event loop.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)


class HttpTransport:
    """GET-only JSON transport"""

    def __init__(self, user_agent: str = "steam-tier-monitor/1.0"):
        self.user_agent = user_agent
        self._session: aiohttp.ClientSession | None = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent, "Accept": "application/json"}
            )
        return self._session

    async def get(self, url: str, params: dict[str, Any], timeout: float) -> HttpResponse:
        """
        Issue one GET request.

        Raises:
            aiohttp.ClientError: connection level failures
            asyncio.TimeoutError: when the total timeout elapses
        """
        session = await self._ensure_session()
        async with session.get(
            url, params=params, timeout=aiohttp.ClientTimeout(total=timeout)
        ) as resp:
            # Steam occasionally sends bodies that are not valid UTF-8
            text = await resp.text(errors="replace")
            return HttpResponse(status=resp.status, text=text, headers=dict(resp.headers))

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("HTTP session closed")
        self._session = None
