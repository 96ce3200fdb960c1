"""Client-side sync core: persisted query cache, connectivity-driven refetch and job polling."""

from __future__ import annotations

from typing import TYPE_CHECKING

from offline_sync.core.errors import (
    AuthRequired,
    NetworkUnreachable,
    SerializationFault,
    ServerRejected,
    SyncError,
    TransportError,
)

if TYPE_CHECKING:
    from offline_sync.client import SyncClient
    from offline_sync.jobs.poller import JobPoller
    from offline_sync.query.engine import QueryEngine

__all__ = [
    "AuthRequired",
    "JobPoller",
    "NetworkUnreachable",
    "QueryEngine",
    "SerializationFault",
    "ServerRejected",
    "SyncClient",
    "SyncError",
    "TransportError",
]


def __getattr__(name: str):
    if name == "SyncClient":
        from offline_sync.client import SyncClient as _SyncClient

        return _SyncClient
    if name == "JobPoller":
        from offline_sync.jobs.poller import JobPoller as _JobPoller

        return _JobPoller
    if name == "QueryEngine":
        from offline_sync.query.engine import QueryEngine as _QueryEngine

        return _QueryEngine
    raise AttributeError(name)
