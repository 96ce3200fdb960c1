from __future__ import annotations

from typing import Any

from offline_sync.monitors.base import StateMonitor

ACTIVE_APP_STATE = "active"


def is_focused(event: Any) -> bool:
    if isinstance(event, bool):
        return event
    return event == ACTIVE_APP_STATE


class FocusMonitor(StateMonitor):
    """Foreground signal. Only the "active" app state counts as focused."""

    name = "focus"

    def __init__(self, *, initial: bool = True) -> None:
        super().__init__(initial=initial)

    @property
    def focused(self) -> bool:
        return self.value

    def handle_event(self, event: Any) -> None:
        self._commit(is_focused(event))
