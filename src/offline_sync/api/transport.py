from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import aiohttp

from offline_sync.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Transport:
    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        json_body: Optional[Any] = None,
    ) -> HttpResponse:
        """
        Perform one HTTP request.

        Returns the response for any status code. Raises TransportError when no response
        was received (connection failure, timeout).
        """
        raise NotImplementedError

    async def close(self) -> None:
        return None


class AiohttpTransport(Transport):
    def __init__(self, *, timeout_seconds: float) -> None:
        self._timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> AiohttpTransport:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        if self._session is not None and not self._session.closed:
            return
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        json_body: Optional[Any] = None,
    ) -> HttpResponse:
        await self.start()
        assert self._session is not None
        logger.debug("HTTP request starting. method=%s url=%s", method, url)
        try:
            async with self._session.request(method, url, headers=dict(headers), json=json_body) as resp:
                body = await resp.read()
                logger.debug("HTTP request finished. method=%s url=%s status=%s", method, url, resp.status)
                return HttpResponse(status=resp.status, body=body, headers=dict(resp.headers))
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request timed out. method={method} url={url}") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Network request failed: {e}") from e
