"""Connectivity and app focus signals."""

from offline_sync.monitors.base import ManualSignalSource, SignalSource, StateMonitor
from offline_sync.monitors.focus import FocusMonitor
from offline_sync.monitors.network import NetworkEvent, NetworkMonitor

__all__ = [
    "FocusMonitor",
    "ManualSignalSource",
    "NetworkEvent",
    "NetworkMonitor",
    "SignalSource",
    "StateMonitor",
]
