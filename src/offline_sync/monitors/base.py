from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

StateListener = Callable[[bool], None]


class SignalSource:
    """Platform event feed (connectivity, app state). Injected into a monitor."""

    def add_listener(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register `callback` for raw events and return a function that removes it."""
        raise NotImplementedError


class ManualSignalSource(SignalSource):
    """A source whose events are pushed by the host application or by tests."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[Any], None]] = []

    def add_listener(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def emit(self, event: Any) -> None:
        for listener in list(self._listeners):
            listener(event)


class StateMonitor:
    """
    Single boolean state with change notifications.

    Only the monitor itself writes the value; everything else reads `value`, subscribes to
    changes, or waits for a given value.
    """

    name = "state"

    def __init__(self, *, initial: bool) -> None:
        self._value = initial
        self._listeners: list[StateListener] = []
        self._events = {True: asyncio.Event(), False: asyncio.Event()}
        self._events[initial].set()
        self._detach: Optional[Callable[[], None]] = None

    @property
    def value(self) -> bool:
        return self._value

    def subscribe(self, callback: StateListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    async def wait_for(self, value: bool) -> None:
        await self._events[value].wait()

    def attach(self, source: SignalSource) -> None:
        self.detach()
        self._detach = source.add_listener(self.handle_event)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None

    def close(self) -> None:
        self.detach()

    def handle_event(self, event: Any) -> None:
        raise NotImplementedError

    def _commit(self, value: bool) -> None:
        if value == self._value:
            return
        self._value = value
        self._events[value].set()
        self._events[not value].clear()
        logger.info("Monitor state changed. monitor=%s value=%s", self.name, value)
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Monitor listener failed. monitor=%s", self.name)
