from __future__ import annotations

import asyncio
import base64
import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from offline_sync.api.transport import HttpResponse, Transport
from offline_sync.auth.credentials import CredentialStore
from offline_sync.core.clock import Clock

BASE_URL = "http://api.test"


class FakeClock(Clock):
    """Sleeping advances time instantly and yields once to the event loop."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += max(0.0, seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.current += seconds


def json_response(payload: Any, status: int = 200) -> HttpResponse:
    return HttpResponse(
        status=status,
        body=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


@dataclass(frozen=True, slots=True)
class RecordedCall:
    method: str
    path: str
    headers: Mapping[str, str]
    json_body: Any


class ScriptedTransport(Transport):
    """
    Replays queued responses per (method, path).

    Items may be an HttpResponse, an exception instance to raise, or a JSON-compatible
    payload returned with status 200. The last item of a queue repeats.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[Any]] = {}
        self.calls: list[RecordedCall] = []
        self.closed = False

    def queue(self, method: str, path: str, *items: Any) -> None:
        self._routes.setdefault((method.upper(), path), []).extend(items)

    def calls_to(self, method: str, path: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.method == method.upper() and c.path == path]

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        json_body: Optional[Any] = None,
    ) -> HttpResponse:
        path = urlsplit(url).path
        self.calls.append(RecordedCall(method=method.upper(), path=path, headers=dict(headers), json_body=json_body))
        items = self._routes.get((method.upper(), path))
        if not items:
            raise AssertionError(f"Unexpected request: {method} {path}")
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, HttpResponse):
            return item
        return json_response(item)

    async def close(self) -> None:
        self.closed = True


class MemoryCredentialStore(CredentialStore):
    def __init__(self, token: Optional[str] = None, *, gate: Optional[asyncio.Event] = None) -> None:
        self.token = token
        self.gate = gate
        self.load_calls = 0
        self.deleted = 0

    async def load_token(self) -> Optional[str]:
        self.load_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.token

    async def save_token(self, token: str) -> None:
        self.token = token

    async def delete_token(self) -> None:
        self.deleted += 1
        self.token = None


def make_jwt(exp: float, sub: str = "42") -> str:
    def _segment(payload: dict) -> str:
        raw = json.dumps(payload).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return ".".join([_segment({"alg": "HS256", "typ": "JWT"}), _segment({"sub": sub, "exp": int(exp)}), "signature"])


class ScriptedFetcher:
    """Zero-argument async fetcher returning (or raising) queued outcomes; the last repeats."""

    def __init__(self, *outcomes: Any) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    def push(self, *outcomes: Any) -> None:
        self._outcomes.extend(outcomes)

    async def __call__(self) -> Any:
        self.calls += 1
        item = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(item, BaseException):
            raise item
        return item


async def settle(rounds: int = 10) -> None:
    """Let background tasks driven by FakeClock run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)
