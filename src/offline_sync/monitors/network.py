from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from offline_sync.core.clock import Clock, SystemClock
from offline_sync.monitors.base import StateMonitor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NetworkEvent:
    is_connected: Optional[bool]
    is_internet_reachable: Optional[bool]


def is_online(event: Any) -> bool:
    """A link counts as online only when it is both connected and reachable."""
    if isinstance(event, NetworkEvent):
        return bool(event.is_connected and event.is_internet_reachable)
    return bool(event)


class NetworkMonitor(StateMonitor):
    """
    Debounced online/offline signal.

    A raw change is committed only if it is still the most recent raw value after
    `debounce_seconds`; flapping back within the window cancels the pending commit.
    """

    name = "network"

    def __init__(
        self,
        *,
        initial: bool = True,
        debounce_seconds: float = 1.0,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(initial=initial)
        self._debounce_seconds = debounce_seconds
        self._clock = clock or SystemClock()
        self._latest = initial
        self._pending: Optional[asyncio.Task] = None

    @property
    def online(self) -> bool:
        return self.value

    def handle_event(self, event: Any) -> None:
        self.report(is_online(event))

    def report(self, online: bool) -> None:
        self._latest = online
        self._cancel_pending()
        if online == self.value:
            return
        if self._debounce_seconds <= 0:
            self._commit(online)
            return
        self._pending = asyncio.create_task(self._commit_later(online))

    async def _commit_later(self, online: bool) -> None:
        await self._clock.sleep(self._debounce_seconds)
        if self._latest == online:
            self._commit(online)

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def close(self) -> None:
        self._cancel_pending()
        super().close()
