from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional
from urllib.parse import urlencode

from offline_sync.api.transport import HttpResponse, Transport
from offline_sync.auth.token_guard import TokenGuard
from offline_sync.core.errors import NetworkUnreachable, TransportError, classify_status
from offline_sync.monitors.network import NetworkMonitor

logger = logging.getLogger(__name__)

Params = Mapping[str, str | int | float | bool]


def _error_message(data: Any, status: int) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error.strip():
            return error.strip()
        status_block = data.get("status")
        if isinstance(status_block, dict):
            message = status_block.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
    return f"HTTP {status}"


def _decode_body(response: HttpResponse) -> Any:
    if not response.body.strip():
        return None
    try:
        return json.loads(response.body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        if response.ok:
            raise TransportError("Invalid JSON response from server", status=response.status) from e
        return None


class ApiClient:
    """
    Authenticated JSON requests against the configured API base URL.

    Every outcome is mapped onto the error taxonomy: 401/403 raise AuthRequired (401 also
    drops the rejected token), 429/5xx raise TransportError, other 4xx raise
    ServerRejected. While the network monitor reports offline no request is attempted.
    """

    def __init__(
        self,
        *,
        base_url: str,
        transport: Transport,
        token_guard: TokenGuard,
        network: Optional[NetworkMonitor] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._token_guard = token_guard
        self._network = network

    def url_for(self, path: str, params: Optional[Params] = None) -> str:
        url = f"{self._base_url}/{path.lstrip('/')}"
        if params:
            url += "?" + urlencode({k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in params.items()})
        return url

    def _is_offline(self) -> bool:
        return self._network is not None and not self._network.online

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Any] = None,
        params: Optional[Params] = None,
    ) -> Any:
        url = self.url_for(path, params)
        if self._is_offline():
            raise NetworkUnreachable(f"Device is offline. method={method} url={url}")

        token = await self._token_guard.get_valid_token()
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

        try:
            response = await self._transport.send(method, url, headers=headers, json_body=json_body)
        except TransportError as e:
            if self._is_offline():
                raise NetworkUnreachable(str(e)) from e
            raise

        data = _decode_body(response)
        if response.status == 401:
            await self._token_guard.invalidate(token)

        error = classify_status(response.status, _error_message(data, response.status))
        if error is not None:
            logger.info(
                "API request failed. method=%s path=%s status=%s error=%s",
                method,
                path,
                response.status,
                error,
            )
            raise error
        return data

    async def get(self, path: str, *, params: Optional[Params] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, body: Any) -> Any:
        return await self.request("POST", path, json_body=body)

    def fetcher(self, path: str, *, params: Optional[Params] = None) -> Callable[[], Awaitable[Any]]:
        """Return a zero-argument fetcher suitable for QueryEngine.read."""

        async def _fetch() -> Any:
            return await self.get(path, params=params)

        return _fetch
