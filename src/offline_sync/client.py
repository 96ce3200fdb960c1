from __future__ import annotations

import logging
from typing import Optional

from offline_sync.api.client import ApiClient
from offline_sync.api.transport import AiohttpTransport, Transport
from offline_sync.auth.credentials import CredentialStore, StoredCredentialStore
from offline_sync.auth.token_guard import TokenGuard
from offline_sync.cache.store import CacheStore
from offline_sync.config.models import AppConfig
from offline_sync.core.clock import Clock, SystemClock
from offline_sync.core.retry import RetryPolicy
from offline_sync.jobs.poller import JobPoller
from offline_sync.monitors.base import SignalSource
from offline_sync.monitors.focus import FocusMonitor
from offline_sync.monitors.network import NetworkMonitor
from offline_sync.query.engine import QueryEngine
from offline_sync.storage.file_store import FileKeyValueStore
from offline_sync.storage.interfaces import KeyValueStore
from offline_sync.storage.markers import SKIPPED_ONBOARDING_KEY, TimestampMarker

logger = logging.getLogger(__name__)


class SyncClient:
    """
    Composition root for the sync core.

    Builds one instance of every component from configuration. Collaborators that talk to
    the platform (byte store, transport, credential store, signal sources, clock) can be
    injected; the defaults are the file store, aiohttp and the system clock.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        store: Optional[KeyValueStore] = None,
        transport: Optional[Transport] = None,
        credentials: Optional[CredentialStore] = None,
        network_source: Optional[SignalSource] = None,
        focus_source: Optional[SignalSource] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.config = config
        self.clock = clock or SystemClock()
        self.store = store or FileKeyValueStore(config.storage.data_dir)
        self._network_source = network_source
        self._focus_source = focus_source

        self.network = NetworkMonitor(debounce_seconds=config.network.debounce_seconds, clock=self.clock)
        self.focus = FocusMonitor()
        self.token_guard = TokenGuard(credentials or StoredCredentialStore(self.store), clock=self.clock)
        self.transport = transport or AiohttpTransport(timeout_seconds=config.api.timeout_seconds)
        self.api = ApiClient(
            base_url=config.api.base_url,
            transport=self.transport,
            token_guard=self.token_guard,
            network=self.network,
        )

        retry_policy = RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay_seconds=config.retry.base_delay_seconds,
            max_delay_seconds=config.retry.max_delay_seconds,
        )
        self.cache_store = CacheStore(self.store)
        self.queries = QueryEngine(
            cache_store=self.cache_store,
            network=self.network,
            focus=self.focus,
            clock=self.clock,
            default_stale_after=config.cache.stale_after_seconds,
            gc_after=config.cache.gc_after_seconds,
            retry_policy=retry_policy,
        )
        self.jobs = JobPoller(
            api=self.api,
            network=self.network,
            focus=self.focus,
            clock=self.clock,
            poll_interval_seconds=config.jobs.poll_interval_seconds,
            max_background_polls=config.jobs.max_background_polls,
            retry_policy=retry_policy,
        )
        self.onboarding_skip = TimestampMarker(self.store, SKIPPED_ONBOARDING_KEY)

    async def __aenter__(self) -> SyncClient:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        if self._network_source is not None:
            self.network.attach(self._network_source)
        if self._focus_source is not None:
            self.focus.attach(self._focus_source)
        await self.queries.start()
        logger.info("Sync client started. base_url=%s", self.config.api.base_url)

    async def close(self) -> None:
        await self.jobs.close()
        await self.queries.close()
        self.network.close()
        self.focus.close()
        await self.transport.close()
        logger.info("Sync client stopped.")

    async def sign_in(self, token: str) -> None:
        await self.token_guard.store(token)

    async def sign_out(self) -> None:
        """Forget the user: stop job polling, drop credentials and the whole cache."""
        await self.jobs.close()
        await self.token_guard.clear()
        await self.queries.clear()
        logger.info("Signed out, credentials and cache cleared.")
